"""
/api/stats endpoints: read-only views over the statistics store.

- GET /api/stats/recent?hours=24   raw samples, newest first (max 1000)
- GET /api/stats/hourly?days=7     hourly avg/min/max active power
- GET /api/stats/daily?days=30     daily aggregates with uptime percent
- GET /api/stats/current           most recent sample
- GET /api/stats/summary?period=   totals for day / week / month

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Query

from collector.src.api.deps import StoreDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])

PERIOD_DAYS: dict[str, int] = {"day": 1, "week": 7, "month": 30}
"""Maps summary period name -> number of days covered."""


@router.get("/recent")
async def get_recent(
    store: StoreDep,
    hours: Annotated[int, Query(ge=1, le=24 * 366)] = 24,
) -> dict:
    """Raw samples of the last ``hours`` hours."""
    samples = await store.query_recent(hours)
    return {"success": True, "data": samples, "count": len(samples), "hours": hours}


@router.get("/hourly")
async def get_hourly(
    store: StoreDep,
    days: Annotated[int, Query(ge=1, le=366)] = 7,
) -> dict:
    """Hourly power aggregates of the last ``days`` days."""
    rows = await store.query_hourly_averages(days)
    return {"success": True, "data": rows, "count": len(rows), "days": days}


@router.get("/daily")
async def get_daily(
    store: StoreDep,
    days: Annotated[int, Query(ge=1, le=366)] = 30,
) -> dict:
    """Daily power aggregates of the last ``days`` days."""
    rows = await store.query_daily_summary(days)
    return {"success": True, "data": rows, "count": len(rows), "days": days}


@router.get("/current")
async def get_current(store: StoreDep) -> dict:
    """The most recent stored sample."""
    sample = await store.query_latest()
    if sample is None:
        return {"success": False, "error": {"message": "No data available"}}
    return {"success": True, "data": sample}


@router.get("/summary")
async def get_summary(
    store: StoreDep,
    period: Annotated[Literal["day", "week", "month"], Query()] = "day",
) -> dict:
    """Totals over the requested period."""
    days = PERIOD_DAYS[period]
    summary = await store.query_summary(days)
    logger.debug("Summary query: period=%s days=%d", period, days)
    return {"success": True, "data": summary, "period": period, "days": days}
