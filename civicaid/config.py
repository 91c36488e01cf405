# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Application configuration resolved once at process start.

All environment access happens in AppConfig.from_env(); request handlers and
services only ever see the resulting immutable AppConfig instance.
"""

import os
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when the process configuration is invalid."""
    pass


class AuthMode(str, Enum):
    """How callers of authenticated surfaces are identified."""
    VERIFIED = "verified"
    DEVELOPMENT = "development"


def _env_flag(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class AppConfig:
    """Immutable application configuration."""
    environment: str = "development"
    auth_mode: AuthMode = AuthMode.VERIFIED
    mongodb_uri: str = "mongodb://localhost:27017/civicaid_dev"
    mongodb_database: str = "civicaid_dev"
    redis_url: Optional[str] = None
    redis_token: Optional[str] = None
    amqp_url: Optional[str] = None
    amqp_exchange: str = "civicaid.tickets"
    jwt_public_key: Optional[str] = None
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None
    base_url: str = "http://localhost:5000"
    otel_enabled: bool = True
    public_submission_limit: int = 3
    public_submission_window_seconds: int = 600

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development_auth(self) -> bool:
        return self.auth_mode == AuthMode.DEVELOPMENT

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Validated AppConfig

        Raises:
            ConfigurationError: If a value is missing, malformed or unsafe
        """
        env = os.environ if environ is None else environ

        raw_mode = env.get("AUTH_MODE", AuthMode.VERIFIED.value).strip().lower()
        try:
            auth_mode = AuthMode(raw_mode)
        except ValueError:
            raise ConfigurationError(
                f"Unknown AUTH_MODE '{raw_mode}', expected one of: "
                + ", ".join(mode.value for mode in AuthMode)
            )

        try:
            limit = int(env.get("PUBLIC_SUBMISSION_LIMIT", "3"))
            window = int(env.get("PUBLIC_SUBMISSION_WINDOW_SECONDS", "600"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid rate limit setting: {e}")

        config = cls(
            environment=env.get("ENVIRONMENT", "development").strip().lower(),
            auth_mode=auth_mode,
            mongodb_uri=env.get("MONGODB_URI", "mongodb://localhost:27017/civicaid_dev"),
            mongodb_database=env.get("MONGODB_DATABASE", "civicaid_dev"),
            redis_url=env.get("REDIS_URL") or None,
            redis_token=env.get("REDIS_TOKEN") or None,
            amqp_url=env.get("AMQP_URL") or None,
            amqp_exchange=env.get("AMQP_EXCHANGE", "civicaid.tickets"),
            jwt_public_key=env.get("JWT_PUBLIC_KEY") or None,
            jwt_issuer=env.get("JWT_ISSUER") or None,
            jwt_audience=env.get("JWT_AUDIENCE") or None,
            base_url=env.get("BASE_URL", "http://localhost:5000"),
            otel_enabled=_env_flag(env.get("OTEL_ENABLED"), True),
            public_submission_limit=limit,
            public_submission_window_seconds=window,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """
        Enforce startup rules.

        Development auth mode can never be combined with a production
        environment, and verified mode needs a key to verify tokens with.
        """
        if self.auth_mode == AuthMode.DEVELOPMENT and self.is_production:
            raise ConfigurationError(
                "AUTH_MODE=development is not allowed when ENVIRONMENT=production"
            )

        if self.auth_mode == AuthMode.VERIFIED and not self.jwt_public_key and self.environment != "test":
            raise ConfigurationError("AUTH_MODE=verified requires JWT_PUBLIC_KEY")

        if self.public_submission_limit < 1 or self.public_submission_window_seconds < 1:
            raise ConfigurationError("Public submission rate limit values must be positive")

        logger.info(
            "Configuration resolved",
            extra={
                "environment": self.environment,
                "auth_mode": self.auth_mode.value,
                "mongodb_database": self.mongodb_database,
                "amqp_configured": bool(self.amqp_url),
                "redis_configured": bool(self.redis_url)
            }
        )
