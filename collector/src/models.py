"""
Pydantic models shared by the device client, poller and health reporting.

Device calls never raise; they return a DeviceResult carrying either the
decoded JSON document or a classified DeviceError. Sample and DeviceRecord
are the normalized rows handed to the statistics store.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ErrorType = Literal["timeout", "connection", "http", "validation", "unknown"]
HealthStatus = Literal["healthy", "unhealthy"]


# ---------------------------------------------------------------------------
# Device results
# ---------------------------------------------------------------------------


class DeviceError(BaseModel):
    """A classified device failure.

    Attributes:
        type: One of ``timeout``, ``connection``, ``http``, ``validation``
            or ``unknown``.
        message: Human readable description.
        status: HTTP status code (``http`` errors only).
        body: Decoded response body (``http`` errors only).
        url: Device URL the request was sent to, when known.
        timeout_ms: Configured deadline (``timeout`` errors only).
    """

    type: ErrorType
    message: str
    status: int | None = None
    body: Any = None
    url: str | None = None
    timeout_ms: int | None = None


class DeviceResult(BaseModel):
    """Outcome of a single device call: ``data`` on success, ``error`` otherwise."""

    success: bool
    data: dict[str, Any] | None = None
    error: DeviceError | None = None
    url: str | None = None


class FullStatus(BaseModel):
    """Combined info/measurement/state fetch.

    ``success`` only reports whether the concurrent join itself worked. Each
    sub-document is ``None`` when its own call failed, with the reason under
    ``errors``; callers must check every field.
    """

    success: bool
    info: dict[str, Any] | None = None
    measurement: dict[str, Any] | None = None
    state: dict[str, Any] | None = None
    errors: dict[str, DeviceError | None] = Field(default_factory=dict)
    error: DeviceError | None = None


class StatePatch(BaseModel):
    """Partial device state update. Unset fields are left off the wire."""

    power_on: bool | None = None
    brightness: int | None = Field(default=None, ge=0, le=255)
    switch_lock: bool | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return only the fields the caller actually set."""
        return self.model_dump(exclude_unset=True)


class DeviceHealth(BaseModel):
    """Reachability of the device measured by one timed info call."""

    status: HealthStatus
    response_time_ms: float | None = None
    timestamp: datetime
    details: Any = None


# ---------------------------------------------------------------------------
# Persisted rows
# ---------------------------------------------------------------------------


class Sample(BaseModel):
    """One timestamped measurement plus state snapshot of the socket.

    Measurement fields are ``None`` when the device omits them. State fields
    fall back to ``False``/``None``/``False`` when the state call failed.
    """

    captured_at: datetime
    device_id: str
    active_power_w: float | None = None
    voltage_v: float | None = None
    current_a: float | None = None
    frequency_hz: float | None = None
    total_energy_import_kwh: float | None = None
    power_on: bool = False
    brightness: int | None = Field(default=None, ge=0, le=255)
    switch_lock: bool = False


class DeviceRecord(BaseModel):
    """Latest known identity of the device, upserted on every info fetch."""

    device_id: str
    product_name: str | None = None
    serial: str | None = None
    firmware_version: str | None = None
    api_version: str | None = None
    last_seen: datetime


# ---------------------------------------------------------------------------
# Collection statistics and health
# ---------------------------------------------------------------------------


class LastError(BaseModel):
    """Most recent collection failure."""

    timestamp: datetime
    message: str


class CollectionStatsSnapshot(BaseModel):
    """Point-in-time copy of the poller counters plus derived values."""

    is_running: bool
    environment: str
    interval_ms: int
    retention_days: int
    attempts: int
    successes: int
    success_rate: float
    last_collection: datetime | None = None
    last_error: LastError | None = None
    next_collection: datetime | None = None
    note: str | None = None


class ServiceHealth(BaseModel):
    """Health of the collection service, embedding the device report."""

    status: HealthStatus
    timestamp: datetime
    is_running: bool
    stats: CollectionStatsSnapshot
    device: DeviceHealth
    note: str | None = None


class StoreHealth(BaseModel):
    """Reachability of the statistics store."""

    status: HealthStatus
    timestamp: datetime
    error: str | None = None


class HealthServices(BaseModel):
    """The three sub-reports, surfaced verbatim."""

    database: StoreHealth
    device: DeviceHealth
    data_collection: ServiceHealth


class HealthReport(BaseModel):
    """Aggregate health, composed fresh for every request."""

    status: HealthStatus
    timestamp: datetime
    version: str
    services: HealthServices
