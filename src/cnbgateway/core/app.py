"""Application factory and entrypoint."""
import os
import time

import httpx
from flask import Flask

from .config import load_upstream_config
from ..utils.logging import log_event, setup_logging
from ..api.middleware import register_middlewares
from ..api.handlers import register_routes
from ..services.upstream import create_http_client
from .settings import Settings, get_settings


def create_app(settings: Settings | None = None, transport: httpx.BaseTransport | None = None) -> Flask:
    """Create and configure the Flask application.

    `transport` replaces the network layer of the upstream client; tests pass
    an `httpx.MockTransport`.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_dir)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    app.config["APP_STARTED_AT"] = time.time()
    app.config["SETTINGS"] = settings

    http_client = create_http_client(settings.upstream_timeout, transport)
    app.extensions["upstream_client"] = http_client

    register_middlewares(app)
    register_routes(app, settings, http_client)
    return app


def run() -> None:
    """Run the Flask development server."""
    app = create_app()
    settings = app.config["SETTINGS"]

    if settings.strict_config and not load_upstream_config().get("repo"):
        log_event(40, "config_error", error="CNB_REPO is not set")
        raise SystemExit("Strict config enabled; set CNB_REPO.")

    debug = os.getenv("FLASK_DEBUG", "").lower() in ("1", "true", "yes", "on")
    app.run(host="0.0.0.0", port=settings.port, debug=debug)


if __name__ == "__main__":
    run()
