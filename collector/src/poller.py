"""
Collection service: periodic fetch-then-persist cycles for the energy socket.

Drives two independent APScheduler jobs on one AsyncIOScheduler:

1. **Poll job**: every ``interval_ms`` (first run immediately on start) calls
   the device client's get_full_status(), upserts the DeviceRecord when the
   info document is present and appends a Sample when the measurement is
   present.
2. **Retention job**: the daily 02:30 cleanup (see retention.py).

Cycles never raise.  A failed cycle is counted, recorded in ``last_error``
and logged; the scheduler keeps running and the next tick simply tries
again (no backoff).

Overlap policy: the poll job runs with ``max_instances=1`` and
``coalesce=True``, so a tick that fires while the previous scheduled cycle
is still running is skipped.  An operator-triggered cycle may overlap a
scheduled one.  Counter updates are plain statements on the event loop with
no ``await`` between read and write, so they stay consistent either way.

In the ``development`` environment start() and trigger_collection() are
logged no-ops; reads, control and health checks keep working.

CHANGELOG:
- 2026-10-19: Document deferred scheduler shutdown in close()
- 2026-10-18: Keep the scheduler alive on stop() so in-flight cycles finish
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from collector.src.models import (
    CollectionStatsSnapshot,
    LastError,
    ServiceHealth,
)
from collector.src.normalizer import build_device_record, build_sample
from collector.src.retention import RetentionScheduler

if TYPE_CHECKING:
    from collector.src.config import CollectorSettings
    from collector.src.db.store import StatsStore
    from collector.src.device_client import DeviceAPI

logger = logging.getLogger(__name__)

POLL_JOB_ID = "stats-collection"
DEVELOPMENT_NOTE = "Data collection disabled in development environment"


class CollectionError(Exception):
    """Raised inside a cycle when the device status could not be fetched."""


@dataclass
class CollectionStats:
    """Process-local counters of one CollectionService instance.

    Invariant: ``successes <= attempts``.
    """

    attempts: int = 0
    successes: int = 0
    last_collection: datetime | None = None
    last_error: LastError | None = None

    @property
    def success_rate(self) -> float:
        """successes / attempts, or 0.0 before the first attempt."""
        if self.attempts == 0:
            return 0.0
        return self.successes / self.attempts


class CollectionService:
    """Periodic collector with manual trigger, stats and health check.

    Args:
        device: Device capability interface to read from.
        store: Statistics store to write to.
        device_id: Identifier stored on samples and the device record.
        interval_ms: Milliseconds between scheduled cycles.
        retention_days: Retention window handed to the cleanup job.
        environment: ``production`` or ``development``.
        cleanup_timezone: Timezone of the 02:30 cleanup job.
        scheduler: Scheduler to register jobs on (a new AsyncIOScheduler
            by default).
    """

    def __init__(
        self,
        device: DeviceAPI,
        store: StatsStore,
        *,
        device_id: str = "default",
        interval_ms: int = 60000,
        retention_days: int = 90,
        environment: str = "production",
        cleanup_timezone: str = "Europe/Berlin",
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._device = device
        self._store = store
        self._device_id = device_id
        self._interval_ms = interval_ms
        self._environment = environment
        self._scheduler = scheduler if scheduler is not None else AsyncIOScheduler()
        self._retention = RetentionScheduler(
            store,
            retention_days=retention_days,
            timezone=cleanup_timezone,
        )
        self._stats = CollectionStats()
        self._is_running = False

    @classmethod
    def from_settings(
        cls,
        settings: CollectorSettings,
        device: DeviceAPI,
        store: StatsStore,
    ) -> CollectionService:
        """Build a service from CollectorSettings."""
        return cls(
            device,
            store,
            device_id=settings.device_id,
            interval_ms=settings.collection_interval_ms,
            retention_days=settings.retention_days,
            environment=settings.environment,
            cleanup_timezone=settings.cleanup_timezone,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def is_development(self) -> bool:
        return self._environment == "development"

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    @property
    def retention(self) -> RetentionScheduler:
        return self._retention

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Arm the poll job (first cycle immediately) and the cleanup job.

        Must be called from within a running event loop.  Calling it while
        already running, or in development mode, is a logged no-op.
        """
        if self._is_running:
            logger.warning("Data collection service is already running")
            return

        if self.is_development:
            logger.info(
                "Skipping data collection: environment is development "
                "(device control and monitoring remain available)"
            )
            return

        logger.info("Starting data collection service (interval: %dms)", self._interval_ms)
        if not self._scheduler.running:
            self._scheduler.start()

        self._scheduler.add_job(
            self.collect,
            IntervalTrigger(seconds=self._interval_ms / 1000.0),
            id=POLL_JOB_ID,
            name="Energy socket collection",
            next_run_time=datetime.now(tz=UTC),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
        )
        self._retention.schedule(self._scheduler)

        self._is_running = True
        logger.info("Data collection service started")

    def stop(self) -> None:
        """Cancel the poll and cleanup jobs.

        Does not wait for an in-flight cycle; it may still complete and
        persist its results.  Idempotent.
        """
        if not self._is_running:
            logger.info("Data collection service is not running")
            return

        logger.info("Stopping data collection service")
        if self._scheduler.get_job(POLL_JOB_ID) is not None:
            self._scheduler.remove_job(POLL_JOB_ID)
        self._retention.cancel(self._scheduler)

        self._is_running = False
        logger.info("Data collection service stopped")

    def close(self) -> None:
        """Stop the service and shut the scheduler down (process exit).

        AsyncIOScheduler runs the shutdown on the next event loop iteration,
        so ``scheduler.running`` is still True when this returns.
        """
        self.stop()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    async def collect(self) -> bool:
        """Run one fetch-then-persist cycle.

        ``attempts`` is incremented before any I/O.  Partial device failures
        (e.g. state unavailable) still count as a successful cycle and are
        persisted with defaults.  Exceptions are recorded and swallowed.

        Returns:
            True if the cycle reached the persistence calls without error.
        """
        self._stats.attempts += 1

        try:
            logger.info("Collecting power usage data")
            status = await self._device.get_full_status()
            if not status.success:
                reason = status.error.message if status.error is not None else "unknown error"
                raise CollectionError(f"Failed to get device status: {reason}")

            ts = datetime.now(tz=UTC)
            if status.info is not None:
                record = build_device_record(status.info, device_id=self._device_id, ts=ts)
                await self._store.upsert_device(record)

            if status.measurement is not None:
                sample = build_sample(
                    status.measurement,
                    status.state,
                    device_id=self._device_id,
                    ts=ts,
                )
                await self._store.append(sample)
            else:
                logger.warning(
                    "Measurement unavailable, no sample stored: %s",
                    status.errors.get("measurement"),
                )
        except Exception as exc:
            self._stats.last_error = LastError(
                timestamp=datetime.now(tz=UTC),
                message=str(exc) or type(exc).__name__,
            )
            logger.error("Data collection failed: %s", exc, exc_info=True)
            return False

        self._stats.successes += 1
        self._stats.last_collection = datetime.now(tz=UTC)
        self._stats.last_error = None
        logger.info(
            "Data collection successful (%d/%d)",
            self._stats.successes,
            self._stats.attempts,
        )
        return True

    async def trigger_collection(self) -> bool:
        """Run one cycle out-of-band.

        Returns:
            False without doing anything in development mode, True once the
            cycle has run (whatever its outcome).
        """
        if self.is_development:
            logger.info("Manual data collection skipped: environment is development")
            return False
        logger.info("Manual data collection triggered")
        await self.collect()
        return True

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_stats(self) -> CollectionStatsSnapshot:
        """Return a snapshot of the counters plus derived values."""
        stats = self._stats
        next_collection = None
        if self._is_running and stats.last_collection is not None:
            next_collection = stats.last_collection + timedelta(milliseconds=self._interval_ms)

        return CollectionStatsSnapshot(
            is_running=self._is_running,
            environment=self._environment,
            interval_ms=self._interval_ms,
            retention_days=self._retention.retention_days,
            attempts=stats.attempts,
            successes=stats.successes,
            success_rate=stats.success_rate,
            last_collection=stats.last_collection,
            last_error=stats.last_error,
            next_collection=next_collection,
            note=DEVELOPMENT_NOTE if self.is_development else None,
        )

    async def health_check(self) -> ServiceHealth:
        """Combine device health with the collection counters.

        Development: mirrors the device health.  Production: healthy iff the
        service is running, the device is healthy and either nothing has
        been attempted yet or more than half of the cycles succeeded.
        """
        device_health = await self._device.health_check()
        stats = self.get_stats()
        device_ok = device_health.status == "healthy"

        if self.is_development:
            healthy = device_ok
        else:
            healthy = (
                self._is_running
                and device_ok
                and (stats.attempts == 0 or stats.success_rate > 0.5)
            )

        return ServiceHealth(
            status="healthy" if healthy else "unhealthy",
            timestamp=datetime.now(tz=UTC),
            is_running=self._is_running,
            stats=stats,
            device=device_health,
            note=DEVELOPMENT_NOTE if self.is_development else None,
        )

    def update_device_url(self, url: str) -> None:
        """Point the device client at ``url`` from the next call on."""
        self._device.update_device_url(url)
        logger.info("Updated device URL to %s", url)
