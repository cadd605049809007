"""
Tests for the collection service (poller).

Covers one cycle end to end against the SQLite store, the attempt/success
counters, development-mode no-ops, scheduler job registration and the
production health rule.

CHANGELOG:
- 2026-10-19: Cover overlapping cycles and stop() during an in-flight cycle
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from collector.src.db.store import StatsStore
from collector.src.models import DeviceError, DeviceResult, FullStatus
from collector.src.poller import DEVELOPMENT_NOTE, POLL_JOB_ID, CollectionService
from collector.src.retention import JOB_ID as RETENTION_JOB_ID


def _failed(error_type: str = "timeout", message: str = "Request timeout") -> DeviceResult:
    return DeviceResult(success=False, error=DeviceError(type=error_type, message=message))


def _mock_store() -> AsyncMock:
    store = AsyncMock()
    store.append = AsyncMock()
    store.upsert_device = AsyncMock()
    return store


# ---------------------------------------------------------------------------
# One collection cycle
# ---------------------------------------------------------------------------


class TestCollect:
    """collect(): fetch then persist, never raise."""

    @pytest.mark.asyncio
    async def test_successful_cycle_persists_sample_and_device(
        self,
        store: StatsStore,
        make_device,
    ) -> None:
        """A healthy device yields one sample and an upserted device record."""
        service = CollectionService(make_device(), store, device_id="socket-1")

        ok = await service.collect()

        assert ok is True
        sample = await store.query_latest()
        assert sample is not None
        assert sample.device_id == "socket-1"
        assert sample.active_power_w == pytest.approx(543.2)
        assert sample.power_on is True
        assert sample.brightness == 180
        assert sample.switch_lock is True
        record = await store.get_device("socket-1")
        assert record is not None
        assert record.serial == "3c39e7aabbcc"

        stats = service.get_stats()
        assert stats.attempts == 1
        assert stats.successes == 1
        assert stats.success_rate == 1.0
        assert stats.last_collection is not None
        assert stats.last_error is None

    @pytest.mark.asyncio
    async def test_state_timeout_stores_defaults(self, store: StatsStore, make_device) -> None:
        """Measurement OK but state timed out: sample stored with state defaults."""
        service = CollectionService(make_device(state=_failed("timeout")), store)

        assert await service.collect() is True

        sample = await store.query_latest()
        assert sample.active_power_w == pytest.approx(543.2)
        assert sample.power_on is False
        assert sample.brightness is None
        assert sample.switch_lock is False
        assert service.get_stats().successes == 1

    @pytest.mark.asyncio
    async def test_measurement_failure_stores_no_sample(self, store: StatsStore, make_device) -> None:
        """Without a measurement only the device record is refreshed."""
        service = CollectionService(
            make_device(measurement=_failed("connection", "refused")),
            store,
            device_id="socket-1",
        )

        assert await service.collect() is True

        assert await store.query_latest() is None
        assert await store.get_device("socket-1") is not None

    @pytest.mark.asyncio
    async def test_failed_status_touches_nothing(self, make_device) -> None:
        """An unsuccessful full status counts as a failed attempt, no writes."""
        store = _mock_store()
        device = make_device()
        device.get_full_status = AsyncMock(
            return_value=FullStatus(success=False, error=_failed("unknown", "join").error)
        )
        service = CollectionService(device, store)

        ok = await service.collect()

        assert ok is False
        store.append.assert_not_awaited()
        store.upsert_device.assert_not_awaited()
        stats = service.get_stats()
        assert stats.attempts == 1
        assert stats.successes == 0
        assert stats.last_error is not None
        assert "join" in stats.last_error.message

    @pytest.mark.asyncio
    async def test_store_failure_is_recorded_not_raised(self, make_device) -> None:
        """A failing write is swallowed and recorded as last_error."""
        store = _mock_store()
        store.append.side_effect = RuntimeError("disk full")
        service = CollectionService(make_device(), store)

        assert await service.collect() is False

        stats = service.get_stats()
        assert stats.attempts == 1
        assert stats.successes == 0
        assert stats.last_error.message == "disk full"

    @pytest.mark.asyncio
    async def test_success_clears_last_error(self, make_device) -> None:
        """The next successful cycle clears last_error."""
        store = _mock_store()
        store.append.side_effect = [RuntimeError("disk full"), None]
        service = CollectionService(make_device(), store)

        await service.collect()
        await service.collect()

        stats = service.get_stats()
        assert stats.attempts == 2
        assert stats.successes == 1
        assert stats.success_rate == 0.5
        assert stats.last_error is None

    @pytest.mark.asyncio
    async def test_overlapping_cycles_on_empty_store_both_persist(
        self,
        store: StatsStore,
        make_device,
    ) -> None:
        """Two overlapping cycles against an empty store both write their sample."""
        service = CollectionService(make_device(delay_s=0.01), store, device_id="socket-1")

        results = await asyncio.gather(service.collect(), service.collect())

        assert results == [True, True]
        assert service.get_stats().successes == 2
        assert len(await store.query_recent(1)) == 2
        assert await store.get_device("socket-1") is not None

    @pytest.mark.asyncio
    async def test_concurrent_cycles_keep_counters_consistent(self, make_device) -> None:
        """Overlapping cycles never lose an increment."""
        store = _mock_store()
        service = CollectionService(make_device(delay_s=0.01), store)

        results = await asyncio.gather(*(service.collect() for _ in range(20)))

        stats = service.get_stats()
        assert all(results)
        assert stats.attempts == 20
        assert stats.successes == 20
        assert store.append.await_count == 20


# ---------------------------------------------------------------------------
# Development mode
# ---------------------------------------------------------------------------


class TestDevelopmentMode:
    """Automatic and manual collection are disabled."""

    @pytest.mark.asyncio
    async def test_start_is_noop(self, make_device) -> None:
        """start() leaves the service stopped with no jobs."""
        service = CollectionService(make_device(), _mock_store(), environment="development")

        service.start()

        assert service.is_running is False
        assert service.scheduler.running is False
        assert service.scheduler.get_jobs() == []
        service.close()

    @pytest.mark.asyncio
    async def test_trigger_writes_nothing(self, make_device) -> None:
        """trigger_collection() returns False and performs no I/O."""
        store = _mock_store()
        device = make_device()
        service = CollectionService(device, store, environment="development")

        assert await service.trigger_collection() is False

        assert device.calls == []
        store.append.assert_not_awaited()
        assert service.get_stats().attempts == 0
        assert service.get_stats().note == DEVELOPMENT_NOTE

    @pytest.mark.asyncio
    async def test_health_mirrors_device(self, make_device) -> None:
        """Development health follows the device only."""
        healthy = CollectionService(make_device(), _mock_store(), environment="development")
        broken = CollectionService(
            make_device(info=_failed("connection", "refused")),
            _mock_store(),
            environment="development",
        )

        assert (await healthy.health_check()).status == "healthy"
        assert (await broken.health_check()).status == "unhealthy"


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


class TestScheduling:
    """Job registration on the AsyncIOScheduler."""

    @pytest.mark.asyncio
    async def test_start_registers_poll_and_retention_jobs(self, make_device) -> None:
        """Both jobs exist and the first poll is due immediately."""
        service = CollectionService(make_device(), _mock_store(), interval_ms=5000)
        before = datetime.now(tz=UTC)

        service.start()
        try:
            poll = service.scheduler.get_job(POLL_JOB_ID)
            assert service.is_running is True
            assert poll is not None
            assert poll.trigger.interval == timedelta(seconds=5)
            assert poll.max_instances == 1
            assert poll.coalesce is True
            assert poll.next_run_time <= before + timedelta(seconds=1)
            assert service.scheduler.get_job(RETENTION_JOB_ID) is not None
        finally:
            service.close()

    @pytest.mark.asyncio
    async def test_first_cycle_runs_on_start(self, make_device) -> None:
        """The immediate first run performs a collection."""
        store = _mock_store()
        service = CollectionService(make_device(), store, interval_ms=60000)

        service.start()
        try:
            for _ in range(100):
                if service.get_stats().attempts:
                    break
                await asyncio.sleep(0.01)
        finally:
            service.close()

        assert service.get_stats().attempts >= 1
        store.append.assert_awaited()

    @pytest.mark.asyncio
    async def test_start_twice_keeps_single_poll_job(self, make_device) -> None:
        """A second start() is a no-op."""
        service = CollectionService(make_device(), _mock_store())

        service.start()
        service.start()
        try:
            ids = [job.id for job in service.scheduler.get_jobs()]
            assert ids.count(POLL_JOB_ID) == 1
            assert ids.count(RETENTION_JOB_ID) == 1
        finally:
            service.close()

    @pytest.mark.asyncio
    async def test_stop_removes_jobs_and_is_idempotent(self, make_device) -> None:
        """stop() cancels both jobs; calling it again is harmless."""
        service = CollectionService(make_device(), _mock_store())
        service.start()

        service.stop()
        service.stop()

        assert service.is_running is False
        assert service.scheduler.get_jobs() == []
        service.close()
        await asyncio.sleep(0)
        assert service.scheduler.running is False

    @pytest.mark.asyncio
    async def test_stop_does_not_wait_for_in_flight_cycle(self, make_device) -> None:
        """A cycle running when stop() is called still completes and persists."""
        store = _mock_store()
        service = CollectionService(make_device(delay_s=0.2), store, interval_ms=60000)
        service.start()
        for _ in range(100):
            if service.get_stats().attempts:
                break
            await asyncio.sleep(0.01)
        assert service.get_stats().attempts == 1

        service.stop()

        assert service.get_stats().successes == 0
        store.append.assert_not_awaited()
        assert service.scheduler.get_job(POLL_JOB_ID) is None
        try:
            for _ in range(100):
                if service.get_stats().successes:
                    break
                await asyncio.sleep(0.01)
        finally:
            service.close()

        assert service.get_stats().successes == 1
        store.append.assert_awaited_once()
        assert service.scheduler.get_jobs() == []

    @pytest.mark.asyncio
    async def test_next_collection(self, make_device) -> None:
        """next_collection = last_collection + interval while running."""
        service = CollectionService(make_device(), _mock_store(), interval_ms=30000)
        assert service.get_stats().next_collection is None

        last = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
        service._stats.last_collection = last
        assert service.get_stats().next_collection is None

        service._is_running = True
        assert service.get_stats().next_collection == last + timedelta(seconds=30)


# ---------------------------------------------------------------------------
# Production health
# ---------------------------------------------------------------------------


class TestProductionHealth:
    """Healthy iff running, device healthy and success rate > 50%."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("successes", "expected"),
        [(4, "unhealthy"), (5, "unhealthy"), (6, "healthy")],
    )
    async def test_success_rate_threshold(self, make_device, successes: int, expected: str) -> None:
        """10 attempts: 4 or 5 successes are unhealthy, 6 are healthy."""
        service = CollectionService(make_device(), _mock_store())
        service._is_running = True
        service._stats.attempts = 10
        service._stats.successes = successes

        health = await service.health_check()

        assert health.status == expected
        assert health.stats.success_rate == successes / 10

    @pytest.mark.asyncio
    async def test_no_attempts_yet_is_healthy(self, make_device) -> None:
        """A running service that has not collected yet is healthy."""
        service = CollectionService(make_device(), _mock_store())
        service._is_running = True

        assert (await service.health_check()).status == "healthy"

    @pytest.mark.asyncio
    async def test_not_running_is_unhealthy(self, make_device) -> None:
        """A stopped production service is unhealthy."""
        service = CollectionService(make_device(), _mock_store())

        assert (await service.health_check()).status == "unhealthy"

    @pytest.mark.asyncio
    async def test_unreachable_device_is_unhealthy(self, make_device) -> None:
        """Device down makes the service unhealthy regardless of counters."""
        service = CollectionService(make_device(info=_failed("timeout")), _mock_store())
        service._is_running = True

        health = await service.health_check()

        assert health.status == "unhealthy"
        assert health.device.status == "unhealthy"


class TestRuntimeUpdates:
    """update_device_url delegates to the device client."""

    def test_update_device_url(self, make_device) -> None:
        """The new URL is applied to the device."""
        device = make_device()
        service = CollectionService(device, _mock_store())

        service.update_device_url("http://10.0.0.9/")

        assert device.base_url == "http://10.0.0.9"
