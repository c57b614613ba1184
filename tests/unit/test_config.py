"""Test configuration module."""

import os
from unittest.mock import patch

from linear_connect.config import Settings, get_settings


class TestSettings:
    """Test Settings class."""

    def setup_method(self):
        get_settings.cache_clear()

    def teardown_method(self):
        get_settings.cache_clear()

    def test_default_settings(self):
        with patch.dict(os.environ, {"ENVIRONMENT": "test"}, clear=True):
            settings = Settings()

        assert settings.app_name == "Linear Connect"
        assert settings.linear_api_url == "https://api.linear.app/graphql"
        assert settings.linear_webhook_base_url == "https://client-api.linear.app/connect/zapier"
        assert settings.page_size == 25
        assert settings.http_timeout == 30.0
        assert settings.debug is False

    def test_env_overrides(self):
        env = {
            "ENVIRONMENT": "test",
            "LINEAR_API_URL": "http://localhost:9000/graphql",
            "PAGE_SIZE": "100",
            "DEBUG": "true",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings()

        assert settings.linear_api_url == "http://localhost:9000/graphql"
        assert settings.page_size == 100
        assert settings.debug is True

    def test_page_size_clamped(self):
        with patch.dict(os.environ, {"ENVIRONMENT": "test", "PAGE_SIZE": "1000"}, clear=True):
            assert Settings().page_size == 250
        with patch.dict(os.environ, {"ENVIRONMENT": "test", "PAGE_SIZE": "0"}, clear=True):
            assert Settings().page_size == 1

    def test_webhook_base_trailing_slash_stripped(self):
        env = {"ENVIRONMENT": "test", "LINEAR_WEBHOOK_BASE_URL": "https://hooks.example/linear/"}
        with patch.dict(os.environ, env, clear=True):
            settings = Settings()

        assert settings.linear_webhook_base_url == "https://hooks.example/linear"

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()
