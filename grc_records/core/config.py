"""Settings groups for the API and the migration CLI.

Values come from the process environment, optionally seeded from
``.env.<APP_ENV>`` at the project root (development when APP_ENV is unset).
Each group reads its own prefix: APP_, LOG_, MITRE_ and MONGODB_.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_ENV = os.getenv("APP_ENV", "development")

PROJECT_ROOT = Path(__file__).resolve().parents[2]

KNOWN_ENVIRONMENTS = ("development", "testing", "staging", "production")


def env_file_for(app_env: str) -> Path | None:
    """Path of ``.env.<app_env>`` at the project root, or None if absent."""
    name = app_env if app_env in KNOWN_ENVIRONMENTS else "development"
    candidate = PROJECT_ROOT / f".env.{name}"
    return candidate if candidate.is_file() else None


# Groups are separate BaseSettings, so the file is loaded into os.environ once.
_env_file = env_file_for(APP_ENV)
if _env_file is not None:
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """HTTP application configuration."""

    debug: bool = Field(
        False,
        description="Expose debug details in the API",
    )
    api_key_required: bool = Field(
        True,
        description="Reject requests without a valid X-API-Key",
    )
    api_keys: str | None = Field(
        None,
        description="Accepted keys, comma separated",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Either 'json' or 'plain'")
    output: str = Field("stdout", description="One of 'stdout', 'stderr' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Number of rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class MitreSettings(BaseSettings):
    """MITRE ATT&CK STIX feed access and validation limits."""

    feed_url: str = Field(
        "https://raw.githubusercontent.com/mitre/cti/master/enterprise-attack/enterprise-attack.json",
        description="Official enterprise ATT&CK STIX bundle",
    )
    user_agent: str = Field("Cycorgi-Threat-Library/1.0")
    request_timeout_seconds: float | None = Field(
        None,
        description="Hard timeout per request; derived from APP_ENV when unset",
        gt=0,
    )
    max_response_bytes: int = Field(50 * 1024 * 1024, ge=1)
    allowed_content_types: list[str] = Field(
        default_factory=lambda: [
            "application/json",
            "application/vnd.api+json",
            "text/plain",
            "text/json",
        ],
    )
    raw_content_hosts: list[str] = Field(
        default_factory=lambda: ["raw.githubusercontent.com"],
        description="Hosts that serve JSON files as text/plain",
    )
    raw_content_types: list[str] = Field(
        default_factory=lambda: ["text/plain", "text/json", "application/json"],
    )
    rate_limit_requests: int = Field(60, ge=1)
    rate_limit_window_seconds: float = Field(60.0, gt=0)
    cache_ttl_seconds: int | None = Field(
        None,
        description="Technique cache lifetime; derived from APP_ENV when unset",
        ge=1,
    )
    cache_grace_seconds: int = Field(
        48 * 60 * 60,
        description="How long expired data may be served when a refresh fails",
        ge=0,
    )
    max_objects: int = Field(10000, ge=1)
    max_techniques: int = Field(1000, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="MITRE_",
        case_sensitive=False,
    )

    def effective_timeout(self, app_env: str) -> float:
        """Configured timeout, or the default for ``app_env``."""
        if self.request_timeout_seconds is not None:
            return self.request_timeout_seconds
        if app_env == "production":
            return 15.0
        if app_env == "development":
            return 5.0
        return 10.0

    def effective_cache_ttl(self, app_env: str) -> int:
        """Configured TTL, else 5 minutes in development and 24 hours elsewhere."""
        if self.cache_ttl_seconds is not None:
            return self.cache_ttl_seconds
        return 5 * 60 if app_env == "development" else 24 * 60 * 60


class MongoSettings(BaseSettings):
    """Document database connection."""

    uri: str = Field("mongodb://localhost:27017", description="MongoDB connection string")
    database: str = Field("cycorgi", description="Database holding the GRC collections")
    server_selection_timeout_ms: int = Field(5000, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="MONGODB_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """All settings groups; a malformed value fails at import time."""

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    mitre: MitreSettings = Field(default_factory=MitreSettings)
    mongo: MongoSettings = Field(default_factory=MongoSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
