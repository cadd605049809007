"""
One-shot schema initialization for the statistics store.

Creates the power_usage_stats and device_info tables if they do not exist
and lists the tables present afterwards.  Intended for first installs and
local SQLite databases; production PostgreSQL deployments use the alembic
migrations under ``collector/src/db/migrations``.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import asyncio
import logging
import sys

from sqlalchemy import inspect

from collector.src.db.session import create_engine, create_schema

logger = logging.getLogger(__name__)


async def init_schema(database_url: str) -> list[str]:
    """Create all tables and return the table names found afterwards.

    Args:
        database_url: Async driver URL of the statistics store.

    Returns:
        list[str]: Sorted table names present in the database.
    """
    engine = create_engine(database_url)
    try:
        await create_schema(engine)
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    finally:
        await engine.dispose()

    for name in sorted(tables):
        logger.info("Table present: %s", name)
    return sorted(tables)


def main() -> None:
    """Console entrypoint: initialize the schema from DATABASE_URL."""
    from collector.src.config import CollectorSettings
    from collector.src.main import configure_logging

    settings = CollectorSettings()
    configure_logging(settings.log_level)
    try:
        asyncio.run(init_schema(settings.database_url))
    except Exception:
        logger.error("Database initialization failed", exc_info=True)
        sys.exit(1)
    logger.info("Database initialization completed")


if __name__ == "__main__":
    main()
