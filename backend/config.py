"""Centralized configuration using Pydantic Settings.

All settings can be overridden via environment variables with the SUBRELAY_ prefix,
or via a .env file. Example: SUBRELAY_BAZARR_URL=http://bazarr:6767
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Subrelay application settings."""

    # General
    port: int = 6780
    api_key: str = ""  # Empty = no auth required
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"
    log_file: str = ""  # Empty = console only

    # Bazarr
    bazarr_url: str = "http://localhost:6767"
    bazarr_api_key: str = ""
    request_timeout: int = 30
    max_retries: int = 3

    # Subtitle search
    enable_for_movies: bool = True
    enable_for_episodes: bool = True
    # Seconds a search may block before a placeholder is returned.
    # 0 = wait indefinitely.
    search_timeout_seconds: int = Field(default=25, ge=0)
    search_request_timeout: int = 1800  # Bazarr queries every provider live
    search_workers: int = Field(default=8, ge=1)

    # Cache lifetimes
    catalog_cache_ttl_seconds: int = 300
    search_cache_ttl_seconds: int = 3600

    model_config = {
        "env_prefix": "SUBRELAY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def bazarr_configured(self) -> bool:
        return bool(self.bazarr_url and self.bazarr_api_key)

    def get_safe_config(self) -> dict:
        """Get config dict without sensitive values (API keys)."""
        data = self.model_dump()
        for key in list(data.keys()):
            if "api_key" in key or "key" in key.split("_"):
                if data[key]:
                    data[key] = "***configured***"
                else:
                    data[key] = ""
        return data


# Singleton settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(overrides: dict = None) -> Settings:
    """Force reload settings from environment/file, with optional overrides.

    Args:
        overrides: Dict of key-value pairs to apply on top of the env/file
                   settings. Unknown keys and unparsable values are skipped.
    """
    global _settings
    base = Settings()

    if overrides:
        base_data = base.model_dump()
        update = {}
        for key, value in overrides.items():
            if key not in base_data:
                continue
            expected_type = type(base_data[key])
            try:
                if expected_type is bool:
                    update[key] = value.lower() in ("true", "1", "yes") if isinstance(value, str) else bool(value)
                elif expected_type is int:
                    update[key] = int(value)
                elif expected_type is float:
                    update[key] = float(value)
                else:
                    update[key] = str(value)
            except (ValueError, TypeError):
                continue  # Skip invalid values

        _settings = base.model_copy(update=update) if update else base
    else:
        _settings = base

    return _settings
