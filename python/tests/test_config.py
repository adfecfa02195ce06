"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from curtain.config import Environment, Settings


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "postgresql+psycopg://localhost/test",
        "CURTAIN_ENV": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestDefaults:
    def test_recompute_defaults(self):
        s = _make_settings()
        assert s.curtain_env == Environment.TEST
        assert s.recompute_max_workers == 4
        assert s.recompute_timeout_s == 300.0

    def test_celery_urls_fall_back_to_redis(self):
        s = _make_settings(REDIS_URL="redis://localhost:6379/0")
        assert s.effective_celery_broker_url == "redis://localhost:6379/0"
        assert s.effective_celery_result_backend == "redis://localhost:6379/0"

        s = _make_settings(
            REDIS_URL="redis://localhost:6379/0", CELERY_BROKER_URL="redis://broker:6379/1"
        )
        assert s.effective_celery_broker_url == "redis://broker:6379/1"


class TestAuthSettings:
    def test_required_outside_test(self):
        with pytest.raises(ValidationError, match="AUTH_JWKS_URL"):
            _make_settings(CURTAIN_ENV="prod")

    def test_audiences_and_issuer_normalized(self):
        s = _make_settings(
            CURTAIN_ENV="staging",
            AUTH_JWKS_URL="https://idp.example/.well-known/jwks.json",
            AUTH_ISSUER="https://idp.example/",
            AUTH_AUDIENCES="curtain, admin ,",
        )
        assert s.normalized_issuer == "https://idp.example"
        assert s.audience_list == ["curtain", "admin"]


class TestRecomputeSettings:
    def test_zero_workers_rejected(self):
        with pytest.raises(ValidationError, match="RECOMPUTE_MAX_WORKERS"):
            _make_settings(RECOMPUTE_MAX_WORKERS=0)

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError, match="RECOMPUTE_TIMEOUT_S"):
            _make_settings(RECOMPUTE_TIMEOUT_S=0)
