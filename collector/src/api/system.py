"""
/api/system endpoints: operations on the collector itself.

- GET  /api/system/health               aggregate health (503 when unhealthy)
- GET  /api/system/collection/stats     collection counters
- POST /api/system/collection/trigger   run one cycle now
- GET  /api/system/info                 version, runtime and configuration
- POST /api/system/config               change device URL / timeout at runtime
- GET  /api/system/database/stats       sample table activity

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
import platform
import time

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, Field

from collector.src import __version__
from collector.src.api.deps import DeviceDep, HealthDep, ServiceDep, SettingsDep, StoreDep
from collector.src.main import masked_database_url
from collector.src.models import HealthReport

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/system", tags=["system"])


class ConfigUpdate(BaseModel):
    """Runtime configuration change.

    Attributes:
        device_url: New device base URL, applied to the next request.
        timeout_ms: New device timeout in milliseconds.
        collection_interval_ms: Accepted but only applied after a restart.
    """

    device_url: str | None = Field(default=None, pattern=r"^https?://")
    timeout_ms: int | None = Field(default=None, gt=0)
    collection_interval_ms: int | None = Field(default=None, ge=1000)


@router.get("/health")
async def system_health(aggregator: HealthDep, response: Response) -> HealthReport:
    """Aggregate health of database, device and collection service."""
    report = await aggregator.check()
    if report.status != "healthy":
        response.status_code = 503
    return report


@router.get("/collection/stats")
async def collection_stats(service: ServiceDep) -> dict:
    """Snapshot of the collection counters."""
    return {"success": True, "data": service.get_stats()}


@router.post("/collection/trigger")
async def trigger_collection(service: ServiceDep) -> dict:
    """Run one collection cycle now (no-op in development)."""
    ran = await service.trigger_collection()
    if not ran:
        return {"success": True, "message": "Data collection is disabled in development environment"}
    return {"success": True, "message": "Data collection triggered successfully"}


@router.get("/info")
async def system_info(request: Request, settings: SettingsDep, device: DeviceDep) -> dict:
    """Version, runtime and effective configuration."""
    started_at = getattr(request.app.state, "started_at", time.monotonic())
    return {
        "success": True,
        "data": {
            "version": __version__,
            "environment": settings.environment,
            "uptime_s": round(time.monotonic() - started_at, 1),
            "platform": platform.platform(),
            "python_version": platform.python_version(),
            "configuration": {
                "port": settings.port,
                "device_url": getattr(device, "base_url", settings.device_url),
                "device_timeout_ms": getattr(device, "timeout_ms", settings.device_timeout_ms),
                "collection_interval_ms": settings.collection_interval_ms,
                "retention_days": settings.retention_days,
                "database": masked_database_url(settings.database_url),
            },
        },
    }


@router.post("/config")
async def update_config(update: ConfigUpdate, service: ServiceDep, device: DeviceDep) -> dict:
    """Apply a runtime configuration change."""
    updated: list[str] = []

    if update.device_url and update.device_url.rstrip("/") != getattr(device, "base_url", None):
        service.update_device_url(update.device_url)
        updated.append(f"device_url: {update.device_url}")

    if update.timeout_ms and update.timeout_ms != getattr(device, "timeout_ms", None):
        device.update_timeout(update.timeout_ms)
        updated.append(f"timeout_ms: {update.timeout_ms}")

    if update.collection_interval_ms:
        updated.append(f"collection_interval_ms: {update.collection_interval_ms} (requires restart)")

    if updated:
        logger.info("Runtime configuration updated: %s", ", ".join(updated))
    message = f"Updated: {', '.join(updated)}" if updated else "No changes made"
    return {"success": True, "message": message, "updated": updated}


@router.get("/database/stats")
async def database_stats(store: StoreDep) -> dict:
    """Row count and time span of the sample table."""
    activity = await store.query_activity()
    return {"success": True, "data": {"activity": activity}}
