"""
Aggregate health of the collector.

Composes three sub-reports, each computed fresh on every call:

- database: StatsStore.ping()
- device: DeviceAPI.health_check()
- data_collection: CollectionService.health_check()

The overall status is healthy only if all three are healthy.  The
sub-reports are returned verbatim so operators can see which leg failed.
Nothing is cached and the aggregator holds no state of its own.

CHANGELOG:
- 2026-10-18: Replace the file-based health writer with on-demand aggregation

TODO:
- None
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from collector.src import __version__
from collector.src.models import HealthReport, HealthServices

if TYPE_CHECKING:
    from collector.src.db.store import StatsStore
    from collector.src.device_client import DeviceAPI
    from collector.src.poller import CollectionService


class HealthAggregator:
    """Combines store, device and collection-service health.

    Args:
        store: Statistics store (``ping()``).
        device: Device client (``health_check()``).
        service: Collection service (``health_check()``).
    """

    def __init__(
        self,
        store: StatsStore,
        device: DeviceAPI,
        service: CollectionService,
    ) -> None:
        self._store = store
        self._device = device
        self._service = service

    async def check(self) -> HealthReport:
        """Run the three checks concurrently and combine them."""
        database, device, data_collection = await asyncio.gather(
            self._store.ping(),
            self._device.health_check(),
            self._service.health_check(),
        )
        healthy = all(
            report.status == "healthy" for report in (database, device, data_collection)
        )
        return HealthReport(
            status="healthy" if healthy else "unhealthy",
            timestamp=datetime.now(tz=UTC),
            version=__version__,
            services=HealthServices(
                database=database,
                device=device,
                data_collection=data_collection,
            ),
        )
