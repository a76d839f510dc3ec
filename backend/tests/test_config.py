"""Tests for config.py: Settings, env prefix and overrides."""

import os

import pytest
from pydantic import ValidationError

from config import Settings, get_settings, reload_settings


def test_default_settings():
    """Test default settings values."""
    settings = get_settings()
    assert settings.port == 6780
    assert settings.bazarr_url == "http://localhost:6767"
    assert settings.search_timeout_seconds == 25
    assert settings.catalog_cache_ttl_seconds == 300
    assert settings.search_cache_ttl_seconds == 3600
    assert settings.enable_for_movies is True
    assert settings.enable_for_episodes is True


def test_env_prefix():
    """Test that SUBRELAY_ prefix works."""
    os.environ["SUBRELAY_PORT"] = "8080"
    os.environ["SUBRELAY_SEARCH_TIMEOUT_SECONDS"] = "0"
    settings = reload_settings()
    assert settings.port == 8080
    assert settings.search_timeout_seconds == 0


def test_get_settings_is_singleton():
    assert get_settings() is get_settings()
    reloaded = reload_settings()
    assert get_settings() is reloaded


def test_negative_timeout_rejected():
    with pytest.raises(ValidationError):
        Settings(search_timeout_seconds=-1)


def test_reload_with_overrides():
    settings = reload_settings({
        "search_timeout_seconds": "10",
        "enable_for_movies": "false",
        "bazarr_url": "http://bazarr:6767",
        "unknown_key": "ignored",
        "search_workers": "many",
    })
    assert settings.search_timeout_seconds == 10
    assert settings.enable_for_movies is False
    assert settings.bazarr_url == "http://bazarr:6767"
    assert settings.search_workers == 8


def test_bazarr_configured():
    assert get_settings().bazarr_configured is False
    assert reload_settings({"bazarr_api_key": "abc"}).bazarr_configured is True


def test_safe_config():
    """Test that safe config hides API keys."""
    settings = reload_settings({"api_key": "secret", "bazarr_api_key": "abc"})
    safe = settings.get_safe_config()
    assert safe["api_key"] == "***configured***"
    assert safe["bazarr_api_key"] == "***configured***"
    assert safe["bazarr_url"] == settings.bazarr_url

    assert reload_settings().get_safe_config()["api_key"] == ""
