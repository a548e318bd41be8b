"""Tests for settings loading and security rules."""

import pytest
from pydantic import ValidationError

from arcfx.config import Settings


class TestDefaults:
    def test_webhook_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.webhook_timeout_seconds == 10.0
        assert settings.webhook_max_retries == 3
        assert settings.webhook_backoff_base_ms == 2000
        assert settings.webhook_failure_threshold == 10
        assert settings.webhook_max_concurrent is None
        assert settings.webhook_user_agent == "ARCfx-Webhook/1.0"
        assert settings.storage_backend == "memory"

    def test_rejects_zero_retries(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, webhook_max_retries=0)

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, webhook_timeout_seconds=0)


class TestEnvironment:
    def test_reads_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("ARCFX_WEBHOOK_MAX_RETRIES", "5")
        monkeypatch.setenv("ARCFX_STORAGE_BACKEND", "qdrant")
        monkeypatch.setenv("ARCFX_COLLECTION_PREFIX", "staging")

        settings = Settings(_env_file=None)

        assert settings.webhook_max_retries == 5
        assert settings.storage_backend == "qdrant"
        assert settings.collection_prefix == "staging"

    def test_unknown_backend_rejected(self, monkeypatch):
        monkeypatch.setenv("ARCFX_STORAGE_BACKEND", "postgres")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestSecurity:
    def test_development_auth_off_with_generated_key(self):
        settings = Settings(_env_file=None, env="development")
        assert settings.is_auth_enabled is False
        assert settings.auth_secret_key is not None
        assert len(settings.auth_secret_key) == 64

    def test_generated_keys_differ(self):
        first = Settings(_env_file=None, env="test")
        second = Settings(_env_file=None, env="test")
        assert first.auth_secret_key != second.auth_secret_key

    def test_production_requires_secret(self):
        with pytest.raises(ValidationError, match="ARCFX_AUTH_SECRET_KEY"):
            Settings(_env_file=None, env="production")

    def test_production_auth_on_by_default(self):
        settings = Settings(_env_file=None, env="production", auth_secret_key="k" * 64)
        assert settings.is_auth_enabled is True

    def test_production_auth_disabled_warns(self):
        with pytest.warns(UserWarning, match="disabled in production"):
            settings = Settings(
                _env_file=None,
                env="production",
                auth_secret_key="k" * 64,
                auth_enabled=False,
            )
        assert settings.is_auth_enabled is False

    def test_explicit_auth_in_development(self):
        settings = Settings(_env_file=None, auth_enabled=True, auth_secret_key="dev-key")
        assert settings.is_auth_enabled is True
        assert settings.auth_secret_key == "dev-key"
