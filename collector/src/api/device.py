"""
/api/device endpoints: passthroughs to the device client.

Reads return the DeviceResult as-is.  Control endpoints wrap the result with
a human readable message.  Device failures are reported in the body with
``success: false`` and HTTP 200; only the device health endpoint maps
failure to 503.  The legacy ``GET /api`` route returns the bare info
document, or the error with HTTP 500.

CHANGELOG:
- 2026-10-19: Add legacy GET /api passthrough for older dashboards
- 2026-10-18: Initial creation

TODO:
- None
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from collector.src.api.deps import DeviceDep
from collector.src.models import DeviceHealth, DeviceResult, FullStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/device", tags=["device"])
legacy_router = APIRouter(tags=["legacy"])


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class PowerRequest(BaseModel):
    power_on: bool


class BrightnessRequest(BaseModel):
    brightness: int


class LockRequest(BaseModel):
    switch_lock: bool


class ControlResponse(BaseModel):
    """Result of a control command.

    Attributes:
        success: Whether the device accepted the command.
        message: Human readable summary.
        result: The underlying DeviceResult.
    """

    success: bool
    message: str
    result: DeviceResult


def _control_response(result: DeviceResult, ok_message: str, failed_action: str) -> ControlResponse:
    if result.success:
        return ControlResponse(success=True, message=ok_message, result=result)
    reason = result.error.message if result.error is not None else "unknown error"
    return ControlResponse(
        success=False,
        message=f"Failed to {failed_action}: {reason}",
        result=result,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@router.get("/info")
async def get_info(device: DeviceDep) -> DeviceResult:
    """Device info document."""
    return await device.get_info()


@router.get("/data")
async def get_data(device: DeviceDep) -> DeviceResult:
    """Live measurement document."""
    return await device.get_measurement()


@router.get("/state")
async def get_state(device: DeviceDep) -> DeviceResult:
    """Current relay / LED / lock state."""
    return await device.get_state()


@router.get("/status")
async def get_status(device: DeviceDep) -> FullStatus:
    """Info, measurement and state in one call; check each field."""
    return await device.get_full_status()


@router.get("/health")
async def get_health(device: DeviceDep, response: Response) -> DeviceHealth:
    """Timed reachability check (503 when unreachable)."""
    health = await device.health_check()
    if health.status != "healthy":
        response.status_code = 503
    return health


# ---------------------------------------------------------------------------
# Control
# ---------------------------------------------------------------------------


@router.put("/state")
async def put_state(
    device: DeviceDep,
    payload: Annotated[dict[str, Any], Body()],
) -> DeviceResult:
    """Partial state update; only the provided fields are sent."""
    return await device.update_state(payload)


@router.post("/power")
async def set_power(device: DeviceDep, body: PowerRequest) -> ControlResponse:
    """Switch the relay on or off."""
    result = await device.set_power(body.power_on)
    label = "ON" if body.power_on else "OFF"
    return _control_response(result, f"Power {label} command sent successfully", "send power command")


@router.post("/brightness")
async def set_brightness(device: DeviceDep, body: BrightnessRequest) -> ControlResponse:
    """Set LED brightness; values outside 0-255 are rejected without a device call."""
    result = await device.set_brightness(body.brightness)
    return _control_response(result, f"Brightness set to {body.brightness}", "set brightness")


@router.post("/lock")
async def set_lock(device: DeviceDep, body: LockRequest) -> ControlResponse:
    """Lock or unlock the physical button."""
    result = await device.set_switch_lock(body.switch_lock)
    label = "ENABLED" if body.switch_lock else "DISABLED"
    return _control_response(result, f"Switch lock {label} successfully", "change switch lock")


# ---------------------------------------------------------------------------
# Legacy
# ---------------------------------------------------------------------------


@legacy_router.get("/api", response_model=None)
async def legacy_info(device: DeviceDep) -> dict[str, Any] | JSONResponse:
    """Bare device info document (500 with the error when unreachable)."""
    result = await device.get_info()
    if not result.success:
        return JSONResponse(status_code=500, content=result.error.model_dump(mode="json"))
    return result.data
