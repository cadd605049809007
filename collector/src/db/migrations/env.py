"""
Alembic environment for the statistics store.

The target URL is resolved through CollectorSettings, so migrations see the
same DATABASE_URL (environment or .env) as the running collector and fail
with the same validation error when it is missing.  Both PostgreSQL
(asyncpg) and SQLite (aiosqlite) are supported; SQLite runs in batch mode
because it cannot ALTER columns in place.

CHANGELOG:
- 2026-10-18: Resolve the URL via CollectorSettings, batch mode on SQLite
- 2026-10-18: Initial creation

TODO:
- None
"""

import asyncio
import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from collector.src.config import CollectorSettings
from collector.src.db.models import Base
from collector.src.main import masked_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def _database_url() -> str:
    url = CollectorSettings().database_url
    logger.info("Migrating %s", masked_database_url(url))
    return url


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without a live connection."""
    url = _database_url()
    _configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync_migrations(connection: Connection) -> None:
    _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Connect with the async driver and run migrations on that connection."""
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _database_url()
    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
