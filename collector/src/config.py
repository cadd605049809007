"""
Collector configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files.
DATABASE_URL is the only required value; a missing database URL aborts
startup, everything else has a working default.

CHANGELOG:
- 2026-10-18: Add cleanup timezone and HTTP bind settings
- 2026-10-18: Initial creation

TODO:
- None
"""

from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError


class CollectorSettings(BaseSettings):
    """Collector configuration for the energy socket statistics bridge.

    Attributes:
        database_url: SQLAlchemy async URL of the statistics store
            (``postgresql+asyncpg://...`` or ``sqlite+aiosqlite:///...``).
        device_url: Base URL of the energy socket on the local LAN.
        device_timeout_ms: Deadline for every outbound device request.
        collection_interval_ms: Milliseconds between collection cycles.
        retention_days: Samples older than this are deleted nightly.
        environment: ``development`` disables automatic and manual
            collection; ``production`` enables it.
        device_id: Identifier stored with every sample and device record.
        cleanup_timezone: IANA timezone the 02:30 cleanup job runs in.
        host: HTTP bind address.
        port: HTTP bind port.
        log_level: Root log level name.
    """

    database_url: str
    device_url: str = "http://172.16.0.189"
    device_timeout_ms: int = 10000
    collection_interval_ms: int = 60000
    retention_days: int = 90
    environment: Literal["development", "production"] = "development"
    device_id: str = "default"
    cleanup_timezone: str = "Europe/Berlin"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @property
    def is_development(self) -> bool:
        """True when automatic collection is disabled."""
        return self.environment == "development"

    @field_validator("database_url")
    @classmethod
    def database_url_must_be_set(cls, v: str) -> str:
        """Reject an empty DATABASE_URL (the store is mandatory)."""
        if not v.strip():
            raise ValueError("DATABASE_URL must not be empty")
        try:
            make_url(v)
        except ArgumentError as exc:
            raise ValueError("DATABASE_URL is not a valid SQLAlchemy URL") from exc
        return v

    @field_validator("device_url")
    @classmethod
    def device_url_must_be_http(cls, v: str) -> str:
        """Validate that the device URL is an http(s) URL."""
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(f"DEVICE_URL must start with http:// or https:// (got: '{v}')")
        return v.rstrip("/")

    @field_validator("device_timeout_ms")
    @classmethod
    def device_timeout_must_be_positive(cls, v: int) -> int:
        """Validate the device timeout is positive."""
        if v <= 0:
            raise ValueError("DEVICE_TIMEOUT_MS must be > 0")
        return v

    @field_validator("collection_interval_ms")
    @classmethod
    def collection_interval_must_be_sane(cls, v: int) -> int:
        """Validate the collection interval is at least one second."""
        if v < 1000:
            raise ValueError("COLLECTION_INTERVAL_MS must be >= 1000")
        return v

    @field_validator("retention_days")
    @classmethod
    def retention_days_must_be_positive(cls, v: int) -> int:
        """Validate the retention window is at least one day."""
        if v < 1:
            raise ValueError("RETENTION_DAYS must be >= 1")
        return v

    @field_validator("cleanup_timezone")
    @classmethod
    def cleanup_timezone_must_exist(cls, v: str) -> str:
        """Validate the cleanup timezone is a known IANA zone."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"CLEANUP_TIMEZONE is not a known timezone: '{v}'") from exc
        return v

    @field_validator("port")
    @classmethod
    def port_must_be_valid(cls, v: int) -> int:
        """Validate HTTP port is in valid range."""
        if v < 1 or v > 65535:
            raise ValueError("PORT must be between 1 and 65535")
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
