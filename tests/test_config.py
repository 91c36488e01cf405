# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

import pytest

from civicaid.config import AppConfig, AuthMode, ConfigurationError


class TestAuthModeRules:

    def test_defaults_to_verified(self):
        config = AppConfig.from_env({"JWT_PUBLIC_KEY": "pem"})
        assert config.auth_mode == AuthMode.VERIFIED
        assert config.is_development_auth is False

    def test_development_mode(self):
        config = AppConfig.from_env({"AUTH_MODE": "Development"})
        assert config.auth_mode == AuthMode.DEVELOPMENT

    def test_development_mode_refused_in_production(self):
        with pytest.raises(ConfigurationError):
            AppConfig.from_env({
                "AUTH_MODE": "development",
                "ENVIRONMENT": "production",
                "JWT_PUBLIC_KEY": "pem"
            })

    def test_unknown_mode(self):
        with pytest.raises(ConfigurationError) as exc_info:
            AppConfig.from_env({"AUTH_MODE": "bypass"})
        assert "bypass" in str(exc_info.value)

    def test_verified_requires_key(self):
        with pytest.raises(ConfigurationError):
            AppConfig.from_env({"ENVIRONMENT": "staging"})

    def test_test_environment_without_key(self):
        config = AppConfig.from_env({"ENVIRONMENT": "test"})
        assert config.jwt_public_key is None


class TestValues:

    def test_reads_environment(self):
        config = AppConfig.from_env({
            "AUTH_MODE": "development",
            "MONGODB_URI": "mongodb://db:27017/civic",
            "MONGODB_DATABASE": "civic",
            "REDIS_URL": "https://redis.example.com",
            "AMQP_URL": "",
            "OTEL_ENABLED": "false",
            "PUBLIC_SUBMISSION_LIMIT": "5",
            "PUBLIC_SUBMISSION_WINDOW_SECONDS": "60"
        })

        assert config.mongodb_database == "civic"
        assert config.redis_url == "https://redis.example.com"
        assert config.amqp_url is None
        assert config.otel_enabled is False
        assert config.public_submission_limit == 5
        assert config.public_submission_window_seconds == 60

    @pytest.mark.parametrize("limit,window", [("abc", "60"), ("0", "60"), ("3", "-1")])
    def test_invalid_rate_limit(self, limit, window):
        with pytest.raises(ConfigurationError):
            AppConfig.from_env({
                "AUTH_MODE": "development",
                "PUBLIC_SUBMISSION_LIMIT": limit,
                "PUBLIC_SUBMISSION_WINDOW_SECONDS": window
            })

    def test_config_is_immutable(self):
        config = AppConfig(environment="test")
        with pytest.raises(Exception):
            config.environment = "production"
