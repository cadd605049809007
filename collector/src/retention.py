"""
Daily retention job for the statistics store.

Registers a single APScheduler cron job that fires at 02:30 local time in
the configured timezone and deletes samples older than the retention
window.  The job is independent of the polling job: a slow collection
cycle never delays it and a failed cleanup never touches the poller.
Failures are logged and swallowed; the job simply waits for its next fire.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.triggers.cron import CronTrigger

if TYPE_CHECKING:
    from apscheduler.job import Job
    from apscheduler.schedulers.base import BaseScheduler

    from collector.src.db.store import StatsStore

logger = logging.getLogger(__name__)

CLEANUP_HOUR = 2
CLEANUP_MINUTE = 30
JOB_ID = "stats-retention"


class RetentionScheduler:
    """Schedules and runs the nightly delete-older-than job.

    Args:
        store: Statistics store providing ``delete_older_than(days)``.
        retention_days: Samples older than this many days are deleted.
        timezone: IANA timezone the 02:30 fire time is interpreted in.
    """

    def __init__(
        self,
        store: StatsStore,
        *,
        retention_days: int,
        timezone: str = "Europe/Berlin",
    ) -> None:
        self._store = store
        self._retention_days = retention_days
        self._timezone = timezone

    @property
    def retention_days(self) -> int:
        return self._retention_days

    def trigger(self) -> CronTrigger:
        """Cron trigger for 02:30 every day in the configured timezone."""
        return CronTrigger(hour=CLEANUP_HOUR, minute=CLEANUP_MINUTE, timezone=self._timezone)

    def schedule(self, scheduler: BaseScheduler) -> Job:
        """Add (or replace) the retention job on ``scheduler``."""
        job = scheduler.add_job(
            self.run,
            self.trigger(),
            id=JOB_ID,
            name="Daily statistics cleanup",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )
        logger.info(
            "Scheduled daily cleanup at %02d:%02d %s (retention: %d days)",
            CLEANUP_HOUR,
            CLEANUP_MINUTE,
            self._timezone,
            self._retention_days,
        )
        return job

    def cancel(self, scheduler: BaseScheduler) -> None:
        """Remove the retention job from ``scheduler`` if present."""
        if scheduler.get_job(JOB_ID) is not None:
            scheduler.remove_job(JOB_ID)
            logger.info("Cancelled daily cleanup job")

    async def run(self) -> int | None:
        """Delete expired samples once.

        Returns:
            The number of deleted rows, or None if the cleanup failed.
        """
        logger.info("Starting daily cleanup of samples older than %d days", self._retention_days)
        try:
            deleted = await self._store.delete_older_than(self._retention_days)
        except Exception:
            logger.error("Daily cleanup failed", exc_info=True)
            return None
        logger.info("Daily cleanup completed (%d samples removed)", deleted)
        return deleted
