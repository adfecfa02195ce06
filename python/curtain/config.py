"""Application settings loaded from environment variables.

Environment Configuration:
    CURTAIN_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    LOG_JSON: Emit JSON logs (default true); console logs when false

Redis / Celery Configuration:
    REDIS_URL: Redis connection string (required for worker)
    CELERY_BROKER_URL: Celery broker URL (defaults to REDIS_URL)
    CELERY_RESULT_BACKEND: Celery result backend URL (defaults to REDIS_URL)

Auth Configuration (required outside the test environment):
    AUTH_JWKS_URL: Full URL to the identity provider's JWKS endpoint
    AUTH_ISSUER: Expected JWT issuer (trailing slash stripped)
    AUTH_AUDIENCES: Comma-separated list of allowed audiences

Recompute Configuration:
    RECOMPUTE_MAX_WORKERS: Users recomputed in parallel by recompute-all
    RECOMPUTE_TIMEOUT_S: Wall-clock budget for one user's recompute pass
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - AUTH_JWKS_URL, AUTH_ISSUER, AUTH_AUDIENCES are required except in test
    - RECOMPUTE_MAX_WORKERS must be >= 1, RECOMPUTE_TIMEOUT_S must be > 0
    """

    curtain_env: Environment = Field(default=Environment.LOCAL, alias="CURTAIN_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Redis / Celery settings
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    celery_broker_url: str | None = Field(default=None, alias="CELERY_BROKER_URL")
    celery_result_backend: str | None = Field(default=None, alias="CELERY_RESULT_BACKEND")

    # Auth settings
    auth_jwks_url: str | None = Field(default=None, alias="AUTH_JWKS_URL")
    auth_issuer: str | None = Field(default=None, alias="AUTH_ISSUER")
    auth_audiences: str | None = Field(default=None, alias="AUTH_AUDIENCES")

    # Recompute settings
    recompute_max_workers: int = Field(default=4, alias="RECOMPUTE_MAX_WORKERS")
    recompute_timeout_s: float = Field(default=300.0, alias="RECOMPUTE_TIMEOUT_S")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure required settings are set for the current environment."""
        if self.curtain_env != Environment.TEST:
            missing_auth = []
            if not self.auth_jwks_url:
                missing_auth.append("AUTH_JWKS_URL")
            if not self.auth_issuer:
                missing_auth.append("AUTH_ISSUER")
            if not self.auth_audiences:
                missing_auth.append("AUTH_AUDIENCES")

            if missing_auth:
                raise ValueError(
                    f"Missing required auth settings: {', '.join(missing_auth)}. "
                    "Set these environment variables or use CURTAIN_ENV=test."
                )

        if self.recompute_max_workers < 1:
            raise ValueError("RECOMPUTE_MAX_WORKERS must be at least 1")
        if self.recompute_timeout_s <= 0:
            raise ValueError("RECOMPUTE_TIMEOUT_S must be positive")

        return self

    @property
    def audience_list(self) -> list[str]:
        """Parse comma-separated audiences into a list."""
        if self.auth_audiences:
            return [a.strip() for a in self.auth_audiences.split(",") if a.strip()]
        return []

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.auth_issuer:
            return self.auth_issuer.rstrip("/")
        return None

    @property
    def effective_celery_broker_url(self) -> str | None:
        """Return Celery broker URL, falling back to REDIS_URL if not set."""
        return self.celery_broker_url or self.redis_url

    @property
    def effective_celery_result_backend(self) -> str | None:
        """Return Celery result backend URL, falling back to REDIS_URL if not set."""
        return self.celery_result_backend or self.redis_url


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
