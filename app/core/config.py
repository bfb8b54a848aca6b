"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production injects via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items.

    Order is preserved and duplicates are dropped.

    Examples:
        >>> parse_csv("a, b ,a")
        ['a', 'b']
        >>> parse_csv(None)
        []
    """
    if not value:
        return []

    items: list[str] = []
    for item in value.split(","):
        item = item.strip()
        if item and item not in items:
            items.append(item)
    return items


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-subject rate limiting on guarded routes",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers on responses",
    )
    rate_limit_backend: Literal["firestore", "memory"] = Field(
        "firestore",
        description="Storage backend for rate limit records",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class FirestoreSettings(BaseSettings):
    """Firestore connection used by the rate limit store.

    Credentials are resolved by the Google client library (Application
    Default Credentials or GOOGLE_APPLICATION_CREDENTIALS).
    """

    project_id: str | None = Field(
        None,
        description="GCP project id (defaults to the ambient project)",
    )
    database: str | None = Field(
        None,
        description="Firestore database id (defaults to '(default)')",
    )
    collection: str = Field(
        "rate_limits",
        description="Collection holding rate limit records",
    )

    model_config = SettingsConfigDict(
        env_prefix="FIRESTORE_",
        case_sensitive=False,
    )


class ScrapingSettings(BaseSettings):
    """Outbound scraping policy."""

    enforce_allowlist: bool = Field(
        False,
        description="Default allow-list mode for URL validation requests",
    )
    extra_allowed_domains: str | None = Field(
        None,
        description="Comma-separated domains appended to the built-in allow-list",
    )

    model_config = SettingsConfigDict(
        env_prefix="SCRAPING_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    firestore: FirestoreSettings = Field(default_factory=FirestoreSettings)
    scraping: ScrapingSettings = Field(default_factory=ScrapingSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance composed from domain-specific settings.
# Nested settings are created via default_factory so env loading works.
settings = Settings()
