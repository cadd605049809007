"""
Async database engine and session factory.

Uses SQLAlchemy 2.x async engine: asyncpg for PostgreSQL in production,
aiosqlite for a local SQLite file in development and tests.  The URL is
passed in explicitly from CollectorSettings rather than read from the
environment here.

CHANGELOG:
- 2026-10-18: Take the URL as a parameter instead of reading DATABASE_URL
- 2026-10-18: Initial creation
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from collector.src.db.models import Base


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: Async driver URL, e.g.
            ``postgresql+asyncpg://user:pw@host/db``.

    Returns:
        AsyncEngine: Configured async engine.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False)
    return create_async_engine(database_url, echo=False, pool_size=10, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to ``engine``.

    Returns:
        async_sessionmaker: Factory for creating AsyncSession instances.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
