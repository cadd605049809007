"""
Tests for the nightly retention job.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import datetime
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from collector.src.retention import JOB_ID, RetentionScheduler


class TestTrigger:
    """The cleanup fires at 02:30 in the configured timezone."""

    def test_next_fire_is_0230_local(self) -> None:
        """From noon, the next fire is 02:30 the following day."""
        berlin = ZoneInfo("Europe/Berlin")
        retention = RetentionScheduler(AsyncMock(), retention_days=90, timezone="Europe/Berlin")

        now = datetime(2026, 10, 18, 12, 0, tzinfo=berlin)
        fire = retention.trigger().get_next_fire_time(None, now)

        assert (fire.year, fire.month, fire.day) == (2026, 10, 19)
        assert (fire.hour, fire.minute) == (2, 30)
        assert fire.utcoffset() == now.utcoffset()

    def test_other_timezone(self) -> None:
        """The timezone is configurable."""
        retention = RetentionScheduler(AsyncMock(), retention_days=90, timezone="UTC")

        assert str(retention.trigger().timezone) == "UTC"


class TestRun:
    """One cleanup execution."""

    @pytest.mark.asyncio
    async def test_deletes_with_retention_window(self) -> None:
        """run() passes retention_days to the store and returns the count."""
        store = AsyncMock()
        store.delete_older_than.return_value = 42
        retention = RetentionScheduler(store, retention_days=30)

        assert await retention.run() == 42
        store.delete_older_than.assert_awaited_once_with(30)

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        """A store error is swallowed; the job survives to the next night."""
        store = AsyncMock()
        store.delete_older_than.side_effect = RuntimeError("database is locked")
        retention = RetentionScheduler(store, retention_days=30)

        with caplog.at_level(logging.ERROR, logger="collector.src.retention"):
            result = await retention.run()

        assert result is None
        assert "Daily cleanup failed" in caplog.text


class TestScheduleCancel:
    """Registration on a scheduler."""

    def test_schedule_and_cancel(self) -> None:
        """schedule() adds the job; cancel() removes it; cancel again is a no-op."""
        scheduler = AsyncIOScheduler()
        retention = RetentionScheduler(AsyncMock(), retention_days=90)

        job = retention.schedule(scheduler)
        assert job.id == JOB_ID
        assert job.max_instances == 1
        assert [job.id for job in scheduler.get_jobs()] == [JOB_ID]

        retention.cancel(scheduler)
        retention.cancel(scheduler)
        assert scheduler.get_jobs() == []
