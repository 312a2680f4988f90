"""Flask middleware registration for request context, CORS, and logging."""
import time
import uuid

from flask import g, request, Response

from ..utils.http import get_client_ip
from ..utils.logging import log_event

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "86400",
}

_QUIET_PATHS = ("/healthz",)


def register_middlewares(app):
    """Register Flask middlewares on the app."""

    @app.before_request
    def attach_request_context():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.request_start = time.time()

    @app.before_request
    def answer_preflight():
        # Runs before routing errors are raised, so every path answers 204.
        if request.method == "OPTIONS":
            return Response(status=204)
        return None

    @app.after_request
    def add_headers(response):
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")
        for key, value in CORS_HEADERS.items():
            response.headers[key] = value

        if request.path in _QUIET_PATHS:
            return response
        latency_ms = None
        if hasattr(g, "request_start"):
            latency_ms = int((time.time() - g.request_start) * 1000)
        log_event(
            20,
            "request",
            request_id=getattr(g, "request_id", ""),
            method=request.method,
            path=request.path,
            status=response.status_code,
            latency_ms=latency_ms,
            capability=getattr(g, "capability", None),
            upstream_url=getattr(g, "upstream_url", None),
            client_ip=get_client_ip(),
        )
        return response
