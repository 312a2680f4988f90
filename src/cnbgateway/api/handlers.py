"""Route handlers for CNB Gateway endpoints."""
import time

import httpx
from flask import Response, jsonify, request, stream_with_context, g
from pydantic import ValidationError

from ..core.config import (
    get_config_errors,
    is_embeddings_enabled,
    load_upstream_config,
    parse_custom_models,
    resolve_upstream_url,
)
from ..utils.http import error_response, extract_bearer_token, get_client_ip
from ..utils.logging import log_event
from ..services.embeddings import EmbeddingsCoordinator, InvalidInputError, classify_input
from ..services.errors import UpstreamError, translate_exception, translate_response_error
from ..services.normalizer import build_models_fallback
from ..services.upstream import get as upstream_get, open_stream, post_json
from .schemas import ChatCompletionsRequest, EmbeddingsRequest
from .streaming import SSE_HEADERS, relay_stream

MISSING_REPO_MESSAGE = (
    "Server configuration error: CNB_REPO environment variable is not set. "
    "Please contact the administrator."
)
EMBEDDINGS_DISABLED_MESSAGE = (
    "Embeddings feature is not enabled. CNB_EMBEDDINGS_PATH environment variable is required."
)
MISSING_TOKEN_MESSAGE = "Missing Authorization header. Please provide your CNB token as Bearer token."


def _config_error(capability: str):
    log_event(40, "config_error", capability=capability, detail="CNB_REPO not set")
    return error_response(MISSING_REPO_MESSAGE, 500, "config_error")


def _feature_not_enabled(capability: str):
    log_event(30, "feature_not_enabled", capability=capability, detail="CNB_EMBEDDINGS_PATH not set")
    return error_response(EMBEDDINGS_DISABLED_MESSAGE, 501, "feature_not_enabled")


def _extract_token(capability: str):
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        log_event(30, "missing_token", capability=capability, client_ip=get_client_ip())
    return token


def _missing_token():
    return error_response(MISSING_TOKEN_MESSAGE, 401, "authentication_error")


def _upstream_error_response(error: UpstreamError):
    return jsonify(error.to_envelope()), error.status


def _server_error(event: str, exc: Exception):
    log_event(40, event, error=str(exc), request_id=getattr(g, "request_id", None))
    return error_response(f"Internal server error: {exc}", 500, "server_error")


def _read_json_object():
    """Return the request body as a dict, or None if it isn't a JSON object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else None


def register_routes(app, settings, http_client: httpx.Client):
    """Register Flask routes on the app."""

    def _stream_chat(url: str, token: str, data: dict):
        request_id = g.request_id
        try:
            upstream = open_stream(http_client, url, token, data)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return _upstream_error_response(translate_exception(exc))

        if not upstream.is_success:
            try:
                upstream.read()
                error = translate_response_error(upstream)
            except httpx.HTTPError as exc:
                error = translate_exception(exc)
            finally:
                upstream.close()
            log_event(40, "upstream_error", request_id=request_id, upstream_url=url, status=error.status, error=error.message)
            return _upstream_error_response(error)

        log_event(20, "chat_completions_stream", request_id=request_id)
        response = Response(
            stream_with_context(relay_stream(upstream, request_id)),
            status=200,
            mimetype="text/event-stream",
            headers=SSE_HEADERS,
        )
        # The relay generator only closes upstream once it has started.
        response.call_on_close(upstream.close)
        return response

    @app.route('/chat/completions', methods=['POST'])
    @app.route('/v1/chat/completions', methods=['POST'])
    def chat_completions():
        g.capability = "chat"
        config = load_upstream_config()
        url = resolve_upstream_url(config, "chat")
        if not url:
            return _config_error("chat")
        token = _extract_token("chat")
        if token is None:
            return _missing_token()

        data = _read_json_object()
        if data is None:
            return error_response("Request body must be a JSON object", 400, "invalid_request_error")
        try:
            payload = ChatCompletionsRequest.model_validate(data)
        except ValidationError as e:
            return error_response(str(e), 400, "invalid_request_error")
        g.upstream_url = url

        try:
            log_event(
                20,
                "chat_completions",
                request_id=g.request_id,
                model=payload.model or "default",
                stream=payload.stream is True,
                messages=len(payload.messages or []),
            )
            if payload.stream is True:
                return _stream_chat(url, token, data)

            result = post_json(http_client, url, token, data, g.request_id)
            if not result.ok:
                return _upstream_error_response(result.error)
            usage = result.payload.get("usage") if isinstance(result.payload, dict) else None
            log_event(20, "chat_completions_done", request_id=g.request_id, usage=usage)
            return jsonify(result.payload)
        except Exception as e:
            return _server_error("chat_completions_error", e)

    @app.route('/embeddings', methods=['POST'])
    @app.route('/v1/embeddings', methods=['POST'])
    def embeddings():
        g.capability = "embeddings"
        config = load_upstream_config()
        if not config.get("repo"):
            return _config_error("embeddings")
        if not is_embeddings_enabled(config):
            return _feature_not_enabled("embeddings")
        url = resolve_upstream_url(config, "embeddings")
        token = _extract_token("embeddings")
        if token is None:
            return _missing_token()

        data = _read_json_object()
        if data is None:
            return error_response("Request body must be a JSON object", 400, "invalid_request_error")
        try:
            payload = EmbeddingsRequest.model_validate(data)
            embedding_input = classify_input(payload.input)
        except ValidationError as e:
            return error_response(str(e), 400, "invalid_request_error")
        except InvalidInputError as e:
            return error_response(str(e), 400, "invalid_request_error")
        g.upstream_url = url

        try:
            log_event(
                20,
                "embeddings",
                request_id=g.request_id,
                model=payload.model or "default",
                kind=embedding_input.kind.value,
                input_length=embedding_input.size,
            )
            coordinator = EmbeddingsCoordinator(
                http_client,
                url,
                token,
                max_workers=settings.embeddings_max_workers,
                request_id=g.request_id,
            )
            result = coordinator.run(embedding_input, payload.model)
            if not result.ok:
                return _upstream_error_response(result.error)
            usage = result.payload.get("usage") if isinstance(result.payload, dict) else None
            log_event(20, "embeddings_done", request_id=g.request_id, usage=usage)
            return jsonify(result.payload)
        except Exception as e:
            return _server_error("embeddings_error", e)

    @app.route('/models', methods=['GET'])
    @app.route('/v1/models', methods=['GET'])
    def list_models():
        g.capability = "models"
        config = load_upstream_config()
        url = resolve_upstream_url(config, "models")
        if not url:
            return _config_error("models")
        token = _extract_token("models")
        if token is None:
            return _missing_token()
        g.upstream_url = url

        fallback_ids = parse_custom_models(config.get("custom_models"))
        try:
            response = upstream_get(http_client, url, token)
            content_type = response.headers.get("Content-Type", "")
            if not response.is_success or "application/json" not in content_type.lower():
                reason = "not_ok" if not response.is_success else "not_json"
                log_event(20, "models_fallback", request_id=g.request_id, reason=reason, status=response.status_code)
                return jsonify(build_models_fallback(fallback_ids))
            data = response.json()
        except Exception as e:
            # Listing must always succeed; any upstream problem degrades to the fallback.
            log_event(30, "models_fallback", request_id=g.request_id, reason="error", error=str(e))
            return jsonify(build_models_fallback(fallback_ids))

        count = len(data.get("data") or []) if isinstance(data, dict) else None
        log_event(20, "models_done", request_id=g.request_id, count=count)
        return jsonify(data)

    @app.route('/healthz', methods=['GET'])
    def health():
        errors = get_config_errors()
        status = "ok" if not errors else "warn"
        verbose = request.args.get("verbose") == "1"
        if not verbose:
            return jsonify({"status": status})
        return jsonify(
            {
                "status": status,
                "uptime_seconds": int(time.time() - app.config.get("APP_STARTED_AT", time.time())),
                "version": settings.app_version,
                "config_errors": errors,
            }
        )

    @app.route('/version', methods=['GET'])
    def version():
        return jsonify({"version": settings.app_version})

    @app.errorhandler(404)
    def handle_not_found(error):
        return error_response("Not found", 404, "invalid_request_error")

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response("Method not allowed", 405, "invalid_request_error")

    @app.errorhandler(413)
    def handle_payload_too_large(error):
        return error_response("Request body too large", 413, "invalid_request_error")
