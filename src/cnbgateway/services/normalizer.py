"""Rewrite upstream payloads into OpenAI-shaped responses.

CNB has returned embeddings in at least three shapes: the OpenAI `data`
list, a bare `embeddings` array, and `data` items whose vector arrives as a
JSON string. Clients such as Cherry Studio fail to unmarshal the last two,
so every embeddings reply goes through `normalize_embeddings_payload`.

All functions here return new objects and leave their arguments untouched.
"""
import json
import time
from numbers import Number

from ..api.schemas import ModelDescriptor, ModelsResponse
from ..utils.logging import log_event

EMPTY_USAGE = {"prompt_tokens": 0, "total_tokens": 0}


def is_number(value) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _embedding_item(vector, index):
    return {"object": "embedding", "embedding": vector, "index": index}


def repair_flat_embeddings(payload: dict, fallback_model: str) -> dict:
    """Turn `{"embeddings": [...]}` into the `data` list shape.

    Payloads that already carry `data`, or whose `embeddings` isn't a list,
    come back as a shallow copy.
    """
    repaired = dict(payload)
    vectors = repaired.get("embeddings")
    if "data" in repaired or not isinstance(vectors, list):
        return repaired

    del repaired["embeddings"]
    if vectors and is_number(vectors[0]):
        repaired["data"] = [_embedding_item(list(vectors), 0)]
    else:
        repaired["data"] = [_embedding_item(vector, index) for index, vector in enumerate(vectors)]
    repaired.setdefault("object", "list")
    repaired.setdefault("model", fallback_model)
    repaired.setdefault("usage", dict(EMPTY_USAGE))
    return repaired


def _reject_constant(name):
    raise ValueError(f"Non-finite number in vector: {name}")


def parse_vector_string(value):
    """Parse `"[0.1, 0.2]"` into a list of numbers, or return None."""
    text = value.strip()
    if not (text.startswith("[") and text.endswith("]")):
        return None
    try:
        parsed = json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        return None
    if not isinstance(parsed, list) or not all(is_number(item) for item in parsed):
        return None
    return parsed


def repair_string_vectors(payload: dict) -> dict:
    """Decode stringified vectors in `data[*].embedding`.

    Strings that don't parse are left as they are.
    """
    data = payload.get("data")
    if not isinstance(data, list):
        return dict(payload)

    fixed = 0
    items = []
    for item in data:
        if isinstance(item, dict) and isinstance(item.get("embedding"), str):
            parsed = parse_vector_string(item["embedding"])
            if parsed is not None:
                item = {**item, "embedding": parsed}
                fixed += 1
            else:
                log_event(30, "embedding_string_unparsed", index=item.get("index"))
        items.append(item)

    if fixed:
        log_event(20, "embedding_strings_parsed", count=fixed)
    return {**payload, "data": items}


def normalize_embeddings_payload(payload, fallback_model: str):
    """Apply both embeddings repairs; non-dict payloads pass through."""
    if not isinstance(payload, dict):
        return payload
    return repair_string_vectors(repair_flat_embeddings(payload, fallback_model))


def build_models_fallback(model_ids, created: int | None = None) -> dict:
    """Synthesize a /v1/models listing from configured ids."""
    created = int(time.time()) if created is None else created
    response = ModelsResponse(data=[ModelDescriptor(id=model_id, created=created) for model_id in model_ids])
    return response.model_dump()
