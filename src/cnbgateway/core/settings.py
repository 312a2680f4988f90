"""Environment-driven settings for CNB Gateway."""
from dataclasses import dataclass
from functools import lru_cache
import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    log_level: str
    app_version: str
    upstream_timeout: float
    embeddings_max_workers: int
    max_body_mb: float
    strict_config: bool
    log_dir: str
    port: int

    @property
    def max_content_length(self) -> int:
        return int(self.max_body_mb * 1024 * 1024)


@lru_cache
def get_settings() -> Settings:
    """Load settings from environment variables."""
    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        app_version=os.getenv("APP_VERSION", "0.1.0"),
        upstream_timeout=float(os.getenv("UPSTREAM_TIMEOUT", "60")),
        embeddings_max_workers=max(1, int(os.getenv("EMBEDDINGS_MAX_WORKERS", "8"))),
        max_body_mb=float(os.getenv("MAX_BODY_MB", "4")),
        strict_config=_env_flag("STRICT_CONFIG"),
        log_dir=os.getenv("LOG_DIR", ""),
        port=int(os.getenv("PORT", "4000")),
    )
