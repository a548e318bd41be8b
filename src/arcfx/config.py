"""Configuration management for ARC-FX."""

import logging
import secrets
import warnings
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

Environment = Literal["development", "production", "test"]


class Settings(BaseSettings):
    """ARC-FX webhook configuration.

    Every field can be set through an ``ARCFX_``-prefixed environment
    variable or a ``.env`` file, e.g.::

        ARCFX_STORAGE_BACKEND=qdrant
        ARCFX_WEBHOOK_MAX_RETRIES=5
        ARCFX_WEBHOOK_FAILURE_THRESHOLD=20

    Production (``ARCFX_ENV=production``) requires ``ARCFX_AUTH_SECRET_KEY``
    and turns operator authentication on unless it is explicitly disabled.
    """

    model_config = SettingsConfigDict(
        env_prefix="ARCFX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: Environment = Field(default="development", description="Deployment environment")

    # Subscription registry
    storage_backend: Literal["memory", "qdrant"] = Field(
        default="memory",
        description="memory (process lifetime) or qdrant (persistent)",
    )
    qdrant_url: str = Field(default="http://localhost:6333", description="Qdrant server URL")
    qdrant_api_key: str | None = Field(default=None, description="Qdrant Cloud API key")
    collection_prefix: str = Field(
        default="arcfx",
        description="Subscriptions live in the <prefix>_webhooks collection",
    )

    # Delivery
    webhook_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Per-attempt HTTP timeout for webhook delivery",
    )
    webhook_max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Delivery attempts per notification before giving up",
    )
    webhook_backoff_base_ms: int = Field(
        default=2000,
        ge=0,
        le=60000,
        description="Wait after the first failed attempt; doubles on each further failure",
    )
    webhook_failure_threshold: int = Field(
        default=10,
        ge=1,
        description="Consecutive exhausted notifications before a subscription is quarantined",
    )
    webhook_max_concurrent: int | None = Field(
        default=None,
        ge=1,
        description="Optional cap on delivery sequences in flight (unbounded if not set)",
    )
    webhook_user_agent: str = Field(
        default="ARCfx-Webhook/1.0",
        description="User-Agent header sent with every delivery",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="json lines or colored console output",
    )

    # Management API
    auth_enabled: bool | None = Field(
        default=None,
        description="Require operator Bearer tokens; unset means on only in production",
    )
    auth_secret_key: str | None = Field(
        default=None,
        description="HMAC key for operator tokens; generated per process outside production",
    )
    auth_token_expire_minutes: int = Field(
        default=60,
        ge=1,
        description="Lifetime of tokens from issue_operator_token, in minutes",
    )
    cors_enabled: bool = Field(default=True, description="Add CORS middleware to the API")
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to call the management API",
    )
    cors_allow_methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        description="Methods allowed for cross-origin calls",
    )

    @model_validator(mode="after")
    def _resolve_auth(self) -> "Settings":
        production = self.env == "production"
        if self.auth_enabled is None:
            self.auth_enabled = production

        if not production:
            if self.auth_secret_key is None:
                # Tokens issued by this process stop validating after a restart
                self.auth_secret_key = secrets.token_hex(32)
            return self

        if self.auth_secret_key is None:
            raise ValueError(
                "ARCFX_AUTH_SECRET_KEY must be set in production, e.g. the output of "
                "`openssl rand -hex 32`"
            )
        if not self.auth_enabled:
            warnings.warn(
                "Operator authentication is disabled in production "
                "(ARCFX_AUTH_ENABLED=false); the management API is open.",
                UserWarning,
                stacklevel=2,
            )
            logger.warning("Management API running without authentication in production")
        return self

    @property
    def is_auth_enabled(self) -> bool:
        """auth_enabled after defaults are resolved."""
        return bool(self.auth_enabled)


settings = Settings()
