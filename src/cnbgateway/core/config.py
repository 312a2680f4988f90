"""Upstream configuration map and URL resolution."""
import logging
import os

DEFAULT_API_BASE = "https://api.cnb.cool"
DEFAULT_CHAT_PATH = "/-/ai/chat/completions"
DEFAULT_MODELS_PATH = "/-/ai/models"
DEFAULT_MODEL_ID = "hunyuan-2.0-instruct"

CAPABILITIES = ("chat", "embeddings", "models")

_ENV_KEYS = {
    "repo": "CNB_REPO",
    "ai_path": "CNB_AI_PATH",
    "models_path": "CNB_MODELS_PATH",
    "embeddings_path": "CNB_EMBEDDINGS_PATH",
    "custom_models": "CNB_CUSTOM_MODELS",
    "api_base": "CNB_API_BASE",
}

logger = logging.getLogger("cnbgateway.config")


def load_upstream_config(environ=None):
    """Read the CNB_* settings into a plain dict.

    Called once per request so operators can change the environment of a
    long-running process without a restart. Empty strings are kept as-is;
    callers decide what "unset" means for each key.
    """
    environ = os.environ if environ is None else environ
    return {key: environ.get(env_name) for key, env_name in _ENV_KEYS.items()}


def _join_url(api_base, repo, path):
    base = (api_base or DEFAULT_API_BASE).rstrip("/")
    repo = repo.strip("/")
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{base}/{repo}{path}"


def resolve_upstream_url(config, capability):
    """Return the upstream URL for a capability, or None if it can't be built.

    None means either CNB_REPO is unset or, for embeddings, that the
    embeddings path is unset. Use `is_embeddings_enabled` to tell them apart.
    """
    if capability not in CAPABILITIES:
        raise ValueError(f"Unknown capability: {capability}")
    repo = config.get("repo")
    if not repo:
        return None
    if capability == "embeddings":
        path = config.get("embeddings_path")
        if not path:
            return None
    elif capability == "chat":
        path = config.get("ai_path") or DEFAULT_CHAT_PATH
    else:
        path = config.get("models_path") or DEFAULT_MODELS_PATH
    return _join_url(config.get("api_base"), repo, path)


def is_embeddings_enabled(config):
    return bool(config.get("embeddings_path"))


def parse_custom_models(raw):
    """Split a comma-separated model list; fall back to the built-in default."""
    if raw is None:
        return [DEFAULT_MODEL_ID]
    models = [item.strip() for item in raw.split(",") if item.strip()]
    return models or [DEFAULT_MODEL_ID]


def get_config_errors(config=None):
    """Return validation warnings for the current upstream config."""
    config = load_upstream_config() if config is None else config
    errors = []
    if not config.get("repo"):
        errors.append("CNB_REPO is not set")
    if not config.get("embeddings_path"):
        errors.append("CNB_EMBEDDINGS_PATH is not set; /v1/embeddings is disabled")
    api_base = config.get("api_base")
    if api_base and not api_base.startswith(("http://", "https://")):
        errors.append(f"CNB_API_BASE must be an http(s) URL: {api_base}")
    if errors:
        logger.debug("Config validation warnings: %s", "; ".join(errors))
    return errors
