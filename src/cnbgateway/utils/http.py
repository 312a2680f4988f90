"""HTTP helpers, bearer token extraction and error responses."""
from flask import jsonify, request

from .logging import log_event

BEARER_PREFIX = "Bearer "
# Some OpenAI clients refuse keys that don't look like "sk-...".
COMPAT_KEY_PREFIX = "sk-"


def get_client_ip() -> str:
    """Resolve client IP with basic X-Forwarded-For support."""
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.remote_addr or "unknown"


def extract_bearer_token(header_value: str | None) -> str | None:
    """Pull the CNB token out of an Authorization header value.

    Returns None only when the header is missing. "Bearer " on its own
    yields an empty string, which is forwarded upstream as-is.
    """
    if not header_value:
        return None
    token = header_value
    if token.startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX):]
    if token.startswith(COMPAT_KEY_PREFIX):
        log_event(10, "token_compat_prefix_removed")
        token = token[len(COMPAT_KEY_PREFIX):]
    return token


def error_response(message: str, status: int = 400, error_type: str = "invalid_request_error", param=None, code=None):
    """Return OpenAI-style error payload."""
    payload = {
        "error": {
            "message": message,
            "type": error_type,
            "param": param,
            "code": code,
        }
    }
    return jsonify(payload), status
