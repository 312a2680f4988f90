"""Thin httpx wrapper for calls to the CNB AI API."""
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .errors import UpstreamError, translate_exception, translate_response_error
from ..utils.logging import log_event

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


@dataclass(frozen=True)
class UpstreamResult:
    """Either a decoded JSON payload or an UpstreamError, never both."""

    payload: Optional[Any] = None
    error: Optional[UpstreamError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def create_http_client(timeout: float, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Create the shared upstream client.

    Redirects are never followed: CNB answers unauthenticated calls with a
    302 to its login page, which would otherwise look like a 200.
    """
    return httpx.Client(timeout=timeout, follow_redirects=False, transport=transport)


def auth_headers(token: str, *, json_body: bool = False) -> dict:
    headers = {"Authorization": f"Bearer {token}"}
    if json_body:
        headers["Content-Type"] = JSON_CONTENT_TYPE
    return headers


def _log_failure(url: str, error: UpstreamError, request_id: str | None) -> None:
    log_event(
        40,
        "upstream_error",
        request_id=request_id,
        upstream_url=url,
        status=error.status,
        code=error.code,
        error=error.message,
    )


def post_json(client: httpx.Client, url: str, token: str, body: Any, request_id: str | None = None) -> UpstreamResult:
    """POST a JSON body and decode the JSON reply."""
    try:
        response = client.post(url, json=body, headers=auth_headers(token, json_body=True))
        if not response.is_success:
            error = translate_response_error(response)
            _log_failure(url, error, request_id)
            return UpstreamResult(error=error)
        return UpstreamResult(payload=response.json())
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
        error = translate_exception(exc)
        _log_failure(url, error, request_id)
        return UpstreamResult(error=error)


def open_stream(client: httpx.Client, url: str, token: str, body: Any):
    """Start a streamed POST and return the open response.

    The caller owns the response and must close it.
    """
    request = client.build_request("POST", url, json=body, headers=auth_headers(token, json_body=True))
    return client.send(request, stream=True)


def get(client: httpx.Client, url: str, token: str) -> httpx.Response:
    """Plain GET with the bearer token; the caller inspects the response."""
    return client.get(url, headers=auth_headers(token))
