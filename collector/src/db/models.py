"""
SQLAlchemy ORM models for the statistics store.

Defines PowerUsageStat (one row per collected sample, composite primary key
(device_id, captured_at)) and DeviceInfo (one row per device, upserted on
every info fetch).

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

import datetime

from sqlalchemy import Boolean, DateTime, Double, Integer, String, false
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all collector ORM models."""

    pass


class PowerUsageStat(Base):
    """Point-in-time measurement and state sample of an energy socket.

    Rows are append-only: written once by the collection service and only
    ever removed by the retention job.

    Attributes:
        device_id: Identifier of the socket.
        captured_at: Capture timestamp in UTC.
        active_power_w: Active power in watts.
        voltage_v: RMS voltage in volts.
        current_a: RMS current in amperes.
        frequency_hz: Grid frequency in hertz.
        total_energy_import_kwh: Lifetime imported energy in kWh.
        power_on: Relay state at capture time.
        brightness: LED ring brightness (0-255), if known.
        switch_lock: Whether the physical button was locked.
    """

    __tablename__ = "power_usage_stats"

    device_id: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
        nullable=False,
    )
    captured_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        primary_key=True,
        nullable=False,
        index=True,
    )
    active_power_w: Mapped[float | None] = mapped_column(Double, nullable=True)
    voltage_v: Mapped[float | None] = mapped_column(Double, nullable=True)
    current_a: Mapped[float | None] = mapped_column(Double, nullable=True)
    frequency_hz: Mapped[float | None] = mapped_column(Double, nullable=True)
    total_energy_import_kwh: Mapped[float | None] = mapped_column(Double, nullable=True)
    power_on: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())
    brightness: Mapped[int | None] = mapped_column(Integer, nullable=True)
    switch_lock: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=false())

    def __repr__(self) -> str:
        """Return string representation of the PowerUsageStat."""
        return (
            f"PowerUsageStat(device_id={self.device_id!r}, "
            f"captured_at={self.captured_at!r}, active_power_w={self.active_power_w!r})"
        )


class DeviceInfo(Base):
    """Latest known identity of a socket.

    Attributes:
        device_id: Unique identifier of the socket.
        product_name: Product name reported by the device.
        serial: Serial number (MAC based on HomeWizard devices).
        firmware_version: Firmware version string.
        api_version: Local API version string.
        last_seen: Time of the most recent successful info fetch.
    """

    __tablename__ = "device_info"

    device_id: Mapped[str] = mapped_column(String(50), primary_key=True)
    product_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    serial: Mapped[str | None] = mapped_column(String(50), nullable=True)
    firmware_version: Mapped[str | None] = mapped_column(String(20), nullable=True)
    api_version: Mapped[str | None] = mapped_column(String(10), nullable=True)
    last_seen: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        """Return string representation of the DeviceInfo."""
        return f"DeviceInfo(device_id={self.device_id!r}, last_seen={self.last_seen!r})"
