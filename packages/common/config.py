"""Settings for the assessment attempt engine.

Loaded from the environment / `.env` through pydantic-settings and cached as a
process-wide singleton by `get_settings()`.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly-typed settings model loaded from env / .env.

    Notes:
        - `BACKEND_URL` points at the assessment backend (start/answer/submit/review).
        - `REDIS_URL` is optional; when unset attempts are cached in process memory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        protected_namespaces=()
    )

    ENV: str = Field(default="dev", description="Deployment environment, e.g. dev/staging/prod")
    SERVICE_NAME: str = Field(default="beelearn-assessment", description="Service name")

    BACKEND_URL: str = Field(default="http://localhost:4000", description="Assessment backend base URL")
    REQUEST_TIMEOUT: float = Field(default=20.0, gt=0, description="HTTP timeout in seconds")
    AUTH_TOKEN: Optional[str] = Field(default=None, description="Bearer token sent to the backend")

    ATTEMPT_CACHE_PREFIX: str = Field(default="beelearn-attempt", description="Key prefix for cached attempts")
    ATTEMPT_CACHE_TTL_SECONDS: int = Field(
        default=6 * 3600, ge=0, description="Max age of a resumable cached attempt; 0 disables expiry"
    )
    REDIS_URL: Optional[str] = Field(default=None, description="Redis URL for the shared attempt cache")

    TIMER_WARNING_SECONDS: int = Field(default=300, ge=0, description="Low-time warning threshold")

    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    LOG_JSON: bool = Field(default=True, description="Emit single-line JSON log records")
    METRICS_PORT: int = Field(default=0, ge=0, description="Prometheus port; 0 keeps the exporter off")


@lru_cache()
def get_settings() -> Settings:
    """Return a cached singleton `Settings` instance."""
    return Settings()
