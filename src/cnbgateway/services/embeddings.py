"""Embeddings fan-out: split string batches into one upstream call each.

CNB's embeddings endpoint takes a single input per call, so a list of
strings becomes N concurrent calls whose results are stitched back into one
OpenAI-style response.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

import httpx

from .errors import UpstreamError, translate_exception
from .normalizer import normalize_embeddings_payload
from .upstream import UpstreamResult, post_json
from ..api.schemas import EmbeddingItem, EmbeddingsResponse, Usage
from ..utils.logging import log_event

DEFAULT_MODEL = "default"


class InputKind(str, Enum):
    TEXT = "text"
    TOKENS = "tokens"
    TEXT_BATCH = "text_batch"


@dataclass(frozen=True)
class EmbeddingInput:
    kind: InputKind
    value: Any

    @property
    def is_batch(self) -> bool:
        return self.kind is InputKind.TEXT_BATCH

    @property
    def size(self) -> int:
        return len(self.value) if self.is_batch else 1


class InvalidInputError(ValueError):
    pass


def classify_input(raw) -> EmbeddingInput:
    """Decide once whether an input is a single item or a string batch.

    Only the first element is inspected: `["a", "b"]` is a batch, while
    `[1, 2, 3]` (or anything else whose first element isn't a string) is a
    single pre-tokenized input.
    """
    if raw is None:
        raise InvalidInputError("No input provided")
    if isinstance(raw, str):
        return EmbeddingInput(InputKind.TEXT, raw)
    if isinstance(raw, (list, tuple)):
        if not raw:
            raise InvalidInputError("No input provided")
        if isinstance(raw[0], str):
            return EmbeddingInput(InputKind.TEXT_BATCH, list(raw))
        return EmbeddingInput(InputKind.TOKENS, list(raw))
    raise InvalidInputError("Input must be a string or an array")


def build_upstream_body(model: str, value) -> dict:
    # CNB reads `text`; OpenAI-compatible deployments read `input`.
    return {"model": model, "input": value, "text": value}


def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def merge_usage(usages) -> dict:
    """Sum prompt/total token counts; missing fields count as zero."""
    prompt_tokens = 0
    total_tokens = 0
    for usage in usages:
        if not isinstance(usage, dict):
            continue
        prompt_tokens += _as_int(usage.get("prompt_tokens"))
        total_tokens += _as_int(usage.get("total_tokens"))
    return Usage(prompt_tokens=prompt_tokens, total_tokens=total_tokens).model_dump()


def first_error(results: List[UpstreamResult]) -> Optional[UpstreamError]:
    """Return the error of the lowest-index failed result, if any."""
    for result in results:
        if not result.ok:
            return result.error
    return None


def merge_batch(payloads: List[dict], requested_model: str) -> dict:
    """Combine normalized per-item payloads into one response.

    `payloads[i]` must be the reply for input `i`; its first data item gets
    `index = i` whatever index upstream reported.

    Raises:
        ValueError: a payload carries no item, or its item has no embedding.
    """
    items = []
    model = None
    for position, payload in enumerate(payloads):
        data = payload.get("data") if isinstance(payload, dict) else None
        first = data[0] if isinstance(data, list) and data else None
        if not isinstance(first, dict) or first.get("embedding") is None:
            raise ValueError(f"Upstream returned no embedding for input {position}")
        items.append(EmbeddingItem(embedding=first["embedding"], index=position))
        if model is None and payload.get("model"):
            model = payload["model"]

    response = EmbeddingsResponse(
        data=items,
        model=model or requested_model,
        usage=Usage(**merge_usage(payload.get("usage") for payload in payloads)),
    )
    return response.model_dump()


class EmbeddingsCoordinator:
    """Send one embeddings request upstream, fanning out string batches."""

    def __init__(self, client: httpx.Client, url: str, token: str, max_workers: int = 8, request_id: str | None = None):
        self.client = client
        self.url = url
        self.token = token
        self.max_workers = max(1, max_workers)
        self.request_id = request_id

    def _call(self, model: str, value) -> UpstreamResult:
        try:
            result = post_json(self.client, self.url, self.token, build_upstream_body(model, value), self.request_id)
        except Exception as exc:  # keep worker failures as values for the join
            return UpstreamResult(error=translate_exception(exc))
        if not result.ok:
            return result
        return UpstreamResult(payload=normalize_embeddings_payload(result.payload, model))

    def run(self, embedding_input: EmbeddingInput, model: str | None = None) -> UpstreamResult:
        model = model or DEFAULT_MODEL
        if not embedding_input.is_batch:
            return self._call(model, embedding_input.value)
        return self._fan_out(embedding_input.value, model)

    def _fan_out(self, values: list, model: str) -> UpstreamResult:
        workers = min(self.max_workers, len(values))
        log_event(
            20,
            "embeddings_fanout",
            request_id=self.request_id,
            inputs=len(values),
            workers=workers,
        )
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embeddings") as executor:
            # map() yields in submission order and the with-block waits for
            # every call, so results line up with the input positions.
            results = list(executor.map(lambda value: self._call(model, value), values))

        error = first_error(results)
        if error is not None:
            return UpstreamResult(error=error)
        try:
            return UpstreamResult(payload=merge_batch([result.payload for result in results], model))
        except ValueError as exc:
            return UpstreamResult(error=UpstreamError(message=str(exc), status=502, code=502))
