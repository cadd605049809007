"""
Pure normalizer that turns device documents into store rows.

Takes the measurement and state documents returned by the device client and
merges them into a Sample; takes the info document and maps it to a
DeviceRecord.  Numeric fields the device omits or reports as non-numbers are
stored as None.  When the state call failed the state fields fall back to
power_on=False, brightness=None, switch_lock=False.

This module is pure: no I/O, no clock.  The device_id and timestamp are
accepted as parameters so they can be injected by the caller.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from collector.src.models import DeviceRecord, Sample

logger = logging.getLogger(__name__)

MEASUREMENT_FIELDS: tuple[str, ...] = (
    "active_power_w",
    "voltage_v",
    "current_a",
    "frequency_hz",
    "total_energy_import_kwh",
)
"""Measurement document keys copied onto every Sample."""

DEVICE_INFO_FIELDS: tuple[str, ...] = (
    "product_name",
    "serial",
    "firmware_version",
    "api_version",
)
"""Info document keys copied onto the DeviceRecord."""


def _as_float(value: Any) -> float | None:
    """Return value as float, or None for missing / non-numeric values."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_brightness(value: Any) -> int | None:
    """Return a brightness in 0-255, or None when absent or out of range."""
    if value is None or isinstance(value, bool):
        return None
    try:
        brightness = int(value)
    except (TypeError, ValueError):
        return None
    if brightness < 0 or brightness > 255:
        logger.warning("Ignoring out-of-range brightness %r from device", value)
        return None
    return brightness


def build_sample(
    measurement: dict[str, Any],
    state: dict[str, Any] | None,
    *,
    device_id: str,
    ts: datetime,
) -> Sample:
    """Merge a measurement document with an optional state document.

    Args:
        measurement: Decoded measurement document (``/api/v1/data``).
        state: Decoded state document (``/api/v1/state``), or None when the
            state call failed.
        device_id: Identifier stored on the sample.
        ts: Capture timestamp.

    Returns:
        A validated Sample.
    """
    values = {name: _as_float(measurement.get(name)) for name in MEASUREMENT_FIELDS}
    state = state or {}
    return Sample(
        captured_at=ts,
        device_id=device_id,
        power_on=bool(state.get("power_on", False)),
        brightness=_as_brightness(state.get("brightness")),
        switch_lock=bool(state.get("switch_lock", False)),
        **values,
    )


def build_device_record(
    info: dict[str, Any],
    *,
    device_id: str,
    ts: datetime,
) -> DeviceRecord:
    """Map an info document (``/api``) to a DeviceRecord seen at ``ts``."""
    fields = {}
    for name in DEVICE_INFO_FIELDS:
        value = info.get(name)
        fields[name] = None if value is None else str(value)
    return DeviceRecord(device_id=device_id, last_seen=ts, **fields)
