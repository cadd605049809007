"""
Collector entrypoint.

Configures structured JSON logging, then serves the FastAPI application
(collector.src.api.main:app) with uvicorn.  The application lifespan loads
CollectorSettings, logs a config summary (database password masked), starts
the collection service and stops it on SIGTERM/SIGINT.

CHANGELOG:
- 2026-10-18: Serve the FastAPI app instead of running bare asyncio loops
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.engine import make_url

if TYPE_CHECKING:
    from collector.src.config import CollectorSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger (stderr).

    Args:
        level: Log level name, e.g. ``INFO`` or ``DEBUG``.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def masked_database_url(database_url: str) -> str:
    """Render the database URL with the password hidden."""
    return make_url(database_url).render_as_string(hide_password=True)


def log_config_summary(settings: CollectorSettings) -> None:
    """Log a config summary at startup with the database password masked."""
    logger.info(
        "Collector starting with config: "
        "environment=%s, device_url=%s, device_timeout_ms=%s, "
        "collection_interval_ms=%s, retention_days=%s, device_id=%s, "
        "cleanup_timezone=%s, database=%s",
        settings.environment,
        settings.device_url,
        settings.device_timeout_ms,
        settings.collection_interval_ms,
        settings.retention_days,
        settings.device_id,
        settings.cleanup_timezone,
        masked_database_url(settings.database_url),
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    """Synchronous entrypoint: validate config, then serve the API."""
    import uvicorn

    from collector.src.config import CollectorSettings

    settings = CollectorSettings()
    configure_logging(settings.log_level)

    uvicorn.run(
        "collector.src.api.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
