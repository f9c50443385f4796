"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from app.core.config import Settings, get_settings


def test_settings_has_defaults():
    """Settings should have sensible defaults."""
    settings = Settings()

    assert settings.app_name == "ResaleLedger"
    assert settings.app_env == "development"
    assert settings.debug is False
    assert settings.log_level == "INFO"
    assert settings.log_format == "json"
    assert settings.base_currency == "GBP"
    assert settings.stockx_request_retries == 3
    assert settings.sync_max_attempts == 3
    assert settings.sync_stale_after_minutes == 5
    assert settings.alias_match_confidence_threshold == 0.85


def test_settings_is_production_property():
    """is_production should return True for production env."""
    settings = Settings(app_env="production")
    assert settings.is_development is False
    assert settings.is_production is True


def test_get_settings_returns_singleton():
    """get_settings should return cached singleton."""
    assert get_settings() is get_settings()


def test_settings_from_environment(monkeypatch):
    """Settings should load from environment variables."""
    monkeypatch.setenv("APP_NAME", "TestApp")
    monkeypatch.setenv("ALIAS_WEBHOOK_SECRET", "whsec")
    monkeypatch.setenv("BASE_CURRENCY", "EUR")

    settings = Settings()

    assert settings.app_name == "TestApp"
    assert settings.alias_webhook_secret == "whsec"
    assert settings.base_currency == "EUR"


def test_base_url_trailing_slash_is_stripped():
    """Provider base URLs should not end with a slash."""
    settings = Settings(alias_api_base_url="https://api.alias.org/api/v1/")
    assert settings.alias_api_base_url == "https://api.alias.org/api/v1"


def test_base_url_must_be_http():
    """Non-http base URLs should be rejected."""
    with pytest.raises(ValidationError):
        Settings(stockx_api_base_url="ftp://stockx")
