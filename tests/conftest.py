"""Common test fixtures for the gateway."""

import json
import threading
from collections.abc import Callable, Generator

import httpx
import pytest
from flask import Flask
from flask.testing import FlaskClient

from cnbgateway.core.app import create_app
from cnbgateway.core.settings import Settings

REPO = "owner/project/repo"
EMBEDDINGS_PATH = "/-/ai/embeddings"
API_BASE = "https://api.cnb.cool"

CHAT_URL = f"{API_BASE}/{REPO}/-/ai/chat/completions"
EMBEDDINGS_URL = f"{API_BASE}/{REPO}{EMBEDDINGS_PATH}"
MODELS_URL = f"{API_BASE}/{REPO}/-/ai/models"

_CNB_VARS = (
    "CNB_REPO",
    "CNB_AI_PATH",
    "CNB_MODELS_PATH",
    "CNB_EMBEDDINGS_PATH",
    "CNB_CUSTOM_MODELS",
    "CNB_API_BASE",
    "LOG_DIR",
)


class FakeUpstream:
    """Stand-in for the CNB API behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()
        self.responder: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        return self.responder(request)

    def bodies(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture(autouse=True)
def upstream_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Point the gateway at a fixed repo with embeddings enabled."""
    for name in _CNB_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CNB_REPO", REPO)
    monkeypatch.setenv("CNB_EMBEDDINGS_PATH", EMBEDDINGS_PATH)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        log_level="DEBUG",
        app_version="test",
        upstream_timeout=5.0,
        embeddings_max_workers=8,
        max_body_mb=1,
        strict_config=False,
        log_dir="",
        port=4000,
    )


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def app(settings: Settings, upstream: FakeUpstream) -> Generator[Flask]:
    flask_app = create_app(settings, transport=httpx.MockTransport(upstream))
    flask_app.config["TESTING"] = True
    yield flask_app
    flask_app.extensions["upstream_client"].close()


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()


@pytest.fixture
def auth() -> dict[str, str]:
    return {"Authorization": "Bearer sk-abc123"}
