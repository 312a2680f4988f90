"""Pydantic schemas for requests and canonical response bodies."""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class ChatCompletionsRequest(BaseModel):
    model: Optional[str] = None
    messages: Optional[List[Dict[str, Any]]] = None
    stream: Optional[bool] = None

    class Config:
        # The body is forwarded verbatim; we only peek at a few fields.
        extra = "allow"


class EmbeddingsRequest(BaseModel):
    model: Optional[str] = None
    input: Optional[Union[str, List[Any]]] = None

    class Config:
        extra = "allow"


class Usage(BaseModel):
    prompt_tokens: int = 0
    total_tokens: int = 0

    class Config:
        extra = "allow"


class EmbeddingItem(BaseModel):
    object: str = "embedding"
    embedding: Any
    index: int


class EmbeddingsResponse(BaseModel):
    object: str = "list"
    data: List[EmbeddingItem] = Field(default_factory=list)
    model: str
    usage: Usage = Field(default_factory=Usage)


class ModelDescriptor(BaseModel):
    id: str
    object: str = "model"
    created: int
    owned_by: str = "cnb"


class ModelsResponse(BaseModel):
    object: str = "list"
    data: List[ModelDescriptor] = Field(default_factory=list)
