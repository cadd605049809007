"""
Aggregate health endpoint.

GET /health returns the composite report of database, device and
collection service: HTTP 200 when all three are healthy, 503 otherwise.
No authentication is required; intended for Docker HEALTHCHECK and
monitoring.

CHANGELOG:
- 2026-10-18: Return the aggregate report instead of a static status
"""

from fastapi import APIRouter, Response

from collector.src.api.deps import HealthDep
from collector.src.models import HealthReport

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(aggregator: HealthDep, response: Response) -> HealthReport:
    """Return the aggregate health report (503 when unhealthy)."""
    report = await aggregator.check()
    if report.status != "healthy":
        response.status_code = 503
    return report
