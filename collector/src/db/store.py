"""
Statistics store: append-only sample persistence plus device upsert.

Wraps an async SQLAlchemy engine and exposes the operations the collection
service, retention job and HTTP layer need:

- append(sample): INSERT one PowerUsageStat row.
- upsert_device(record): atomic INSERT ... ON CONFLICT DO UPDATE of DeviceInfo.
- query_recent(hours): newest samples first, capped at ``limit`` rows.
- query_hourly_averages(days) / query_daily_summary(days): bucketed power
  aggregates (date_trunc on PostgreSQL, strftime on SQLite).
- query_latest() / query_summary(days) / query_activity(): dashboard reads.
- delete_older_than(days): retention delete, returns the row count.
- ping(): SELECT 1, reported as healthy/unhealthy (never raises).

CHANGELOG:
- 2026-10-19: Make upsert_device a single ON CONFLICT statement
- 2026-10-18: Add daily summary, latest sample and activity queries
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import case, delete, func, select, text
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncEngine

from collector.src.db.models import DeviceInfo, PowerUsageStat
from collector.src.db.session import create_engine, create_session_factory
from collector.src.models import DeviceRecord, Sample, StoreHealth

logger = logging.getLogger(__name__)

RECENT_LIMIT = 1000
"""Maximum number of rows returned by query_recent()."""


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_sample(row: PowerUsageStat) -> Sample:
    return Sample(
        captured_at=_as_utc(row.captured_at),
        device_id=row.device_id,
        active_power_w=row.active_power_w,
        voltage_v=row.voltage_v,
        current_a=row.current_a,
        frequency_hz=row.frequency_hz,
        total_energy_import_kwh=row.total_energy_import_kwh,
        power_on=row.power_on,
        brightness=row.brightness,
        switch_lock=row.switch_lock,
    )


class StatsStore:
    """Async statistics store backed by SQLAlchemy.

    Args:
        engine: Async engine for PostgreSQL (asyncpg) or SQLite (aiosqlite).

    Usage::

        store = StatsStore.from_url("sqlite+aiosqlite:///stats.db")
        await store.append(sample)
        deleted = await store.delete_older_than(90)
        await store.close()
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str) -> StatsStore:
        """Build a store with a fresh engine for ``database_url``."""
        return cls(create_engine(database_url))

    @property
    def engine(self) -> AsyncEngine:
        """The underlying async engine."""
        return self._engine

    async def close(self) -> None:
        """Dispose of the engine's connection pool."""
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def append(self, sample: Sample) -> None:
        """Insert one sample row."""
        async with self._session_factory() as session:
            session.add(PowerUsageStat(**sample.model_dump()))
            await session.commit()

    async def upsert_device(self, record: DeviceRecord) -> None:
        """Insert the device row or overwrite it with the latest values.

        A single INSERT ... ON CONFLICT DO UPDATE, so overlapping cycles on an
        empty table cannot both insert.  ``last_seen`` never moves backwards,
        even if ``record`` carries an older timestamp than the stored one.
        """
        if self._engine.dialect.name == "sqlite":
            stmt = sqlite_insert(DeviceInfo).values(**record.model_dump())
            newest = func.max(DeviceInfo.last_seen, stmt.excluded.last_seen)
        else:
            stmt = postgresql_insert(DeviceInfo).values(**record.model_dump())
            newest = func.greatest(DeviceInfo.last_seen, stmt.excluded.last_seen)

        stmt = stmt.on_conflict_do_update(
            index_elements=[DeviceInfo.device_id],
            set_={
                "product_name": stmt.excluded.product_name,
                "serial": stmt.excluded.serial,
                "firmware_version": stmt.excluded.firmware_version,
                "api_version": stmt.excluded.api_version,
                "last_seen": newest,
            },
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def delete_older_than(self, days: int, *, now: datetime | None = None) -> int:
        """Delete samples captured more than ``days`` days before ``now``.

        Args:
            days: Retention window in days.
            now: Reference time (defaults to the current UTC time).

        Returns:
            int: Number of rows deleted.
        """
        cutoff = (now or datetime.now(tz=UTC)) - timedelta(days=days)
        async with self._session_factory() as session:
            result = await session.execute(
                delete(PowerUsageStat).where(PowerUsageStat.captured_at < cutoff)
            )
            await session.commit()

        deleted = result.rowcount or 0
        logger.info("Cleaned up %d samples older than %d days", deleted, days)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_device(self, device_id: str) -> DeviceRecord | None:
        """Return the stored device record, if any."""
        async with self._session_factory() as session:
            row = await session.get(DeviceInfo, device_id)
        if row is None:
            return None
        return DeviceRecord(
            device_id=row.device_id,
            product_name=row.product_name,
            serial=row.serial,
            firmware_version=row.firmware_version,
            api_version=row.api_version,
            last_seen=_as_utc(row.last_seen),
        )

    async def query_recent(
        self,
        hours: int = 24,
        *,
        limit: int = RECENT_LIMIT,
        now: datetime | None = None,
    ) -> list[Sample]:
        """Return samples from the last ``hours`` hours, newest first."""
        since = (now or datetime.now(tz=UTC)) - timedelta(hours=hours)
        stmt = (
            select(PowerUsageStat)
            .where(PowerUsageStat.captured_at >= since)
            .order_by(PowerUsageStat.captured_at.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
        return [_to_sample(row) for row in rows]

    async def query_latest(self) -> Sample | None:
        """Return the most recent sample, or None when the table is empty."""
        stmt = select(PowerUsageStat).order_by(PowerUsageStat.captured_at.desc()).limit(1)
        async with self._session_factory() as session:
            row = (await session.scalars(stmt)).first()
        return None if row is None else _to_sample(row)

    async def query_hourly_averages(
        self,
        days: int = 7,
        *,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Average/min/max active power per hour over the last ``days`` days."""
        return await self._bucketed(
            "hour",
            days,
            now=now,
            extra_columns=(),
        )

    async def query_daily_summary(
        self,
        days: int = 30,
        *,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Per-day power aggregates plus the share of samples with power on."""
        return await self._bucketed(
            "day",
            days,
            now=now,
            extra_columns=(self._uptime_percent().label("uptime_percent"),),
        )

    async def query_summary(
        self,
        days: int = 1,
        *,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Totals over the last ``days`` days."""
        since = (now or datetime.now(tz=UTC)) - timedelta(days=days)
        power = PowerUsageStat.active_power_w
        stmt = select(
            func.count().label("total_measurements"),
            func.avg(power).label("avg_power"),
            func.min(power).label("min_power"),
            func.max(power).label("max_power"),
            func.min(PowerUsageStat.captured_at).label("first_measurement"),
            func.max(PowerUsageStat.captured_at).label("last_measurement"),
            self._uptime_percent().label("uptime_percent"),
        ).where(PowerUsageStat.captured_at >= since, power.is_not(None))
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).one()
        return dict(row._mapping)

    async def query_activity(self) -> dict[str, Any]:
        """Row count, oldest/newest sample and number of days with data."""
        day = self._bucket_expr("day")
        stmt = select(
            func.count().label("total_records"),
            func.min(PowerUsageStat.captured_at).label("oldest_record"),
            func.max(PowerUsageStat.captured_at).label("newest_record"),
            func.count(day.distinct()).label("days_with_data"),
        )
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).one()
        return dict(row._mapping)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def ping(self) -> StoreHealth:
        """Run ``SELECT 1``; report unhealthy instead of raising."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as exc:
            logger.warning("Database health check failed: %s", exc)
            return StoreHealth(status="unhealthy", timestamp=datetime.now(tz=UTC), error=str(exc))
        return StoreHealth(status="healthy", timestamp=datetime.now(tz=UTC))

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _bucket_expr(self, unit: str) -> Any:
        """Truncate captured_at to ``unit`` (``hour`` or ``day``)."""
        column = PowerUsageStat.captured_at
        if self._engine.dialect.name == "sqlite":
            fmt = "%Y-%m-%d %H:00:00" if unit == "hour" else "%Y-%m-%d"
            return func.strftime(fmt, column)
        return func.date_trunc(unit, column)

    @staticmethod
    def _uptime_percent() -> Any:
        return func.avg(case((PowerUsageStat.power_on, 100.0), else_=0.0))

    async def _bucketed(
        self,
        unit: str,
        days: int,
        *,
        now: datetime | None,
        extra_columns: tuple[Any, ...],
    ) -> list[dict[str, Any]]:
        since = (now or datetime.now(tz=UTC)) - timedelta(days=days)
        bucket = self._bucket_expr(unit).label(unit)
        power = PowerUsageStat.active_power_w
        stmt = (
            select(
                bucket,
                func.avg(power).label("avg_power"),
                func.min(power).label("min_power"),
                func.max(power).label("max_power"),
                func.count().label("sample_count"),
                *extra_columns,
            )
            .where(PowerUsageStat.captured_at >= since, power.is_not(None))
            .group_by(bucket)
            .order_by(bucket.desc())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
        return [dict(row._mapping) for row in result]
