"""Translate upstream failures into OpenAI-style error values."""
import json
from dataclasses import dataclass
from typing import Any, Optional

import httpx

REDIRECT_LOGIN_MARKERS = ("signin", "login")
PROBABLE_CAUSE_HINT = " (Probable cause: Invalid Token or CNB_REPO)"


@dataclass(frozen=True)
class UpstreamError:
    """A failed upstream call, carried as a value rather than raised."""

    message: str
    status: int
    error_type: str = "upstream_error"
    code: Optional[Any] = None

    def to_envelope(self) -> dict:
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "param": None,
                "code": self.code,
            }
        }


def _redirect_message(response: httpx.Response) -> str:
    message = f"Upstream returned {response.status_code}"
    location = response.headers.get("Location")
    if location:
        message += f". Redirect to: {location}"
        lowered = location.lower()
        if any(marker in lowered for marker in REDIRECT_LOGIN_MARKERS):
            message += PROBABLE_CAUSE_HINT
    return message


def _message_from_body(text: str):
    """Return (message, code) extracted from an upstream error body."""
    if not text:
        return None, None
    try:
        body = json.loads(text)
    except ValueError:
        return text, None
    if not isinstance(body, dict):
        return text, None
    message = None
    if body.get("msg"):
        message = str(body["msg"])
    else:
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            message = str(error["message"])
    return message or text, body.get("code") or None


def translate_response_error(response: httpx.Response) -> UpstreamError:
    """Classify a non-2xx upstream response.

    The body must already be loaded (call `response.read()` first for
    streamed responses).
    """
    status = response.status_code
    try:
        text = response.text
    except (httpx.HTTPError, UnicodeDecodeError):
        text = ""
    body_message, body_code = _message_from_body(text)
    code = body_code if body_code is not None else status

    if 300 <= status < 400:
        message = _redirect_message(response)
    else:
        message = f"Upstream returned {status}"

    # A non-empty upstream body always wins over the generated message.
    return UpstreamError(
        message=body_message or message,
        status=status,
        code=code,
    )


def translate_exception(exc: BaseException) -> UpstreamError:
    """Map transport and decode failures to a generic server error."""
    detail = str(exc) or exc.__class__.__name__
    return UpstreamError(
        message=f"Internal server error: {detail}",
        status=500,
        error_type="server_error",
    )
