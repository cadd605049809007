"""
Initial schema: power_usage_stats and device_info tables.

Creates the append-only sample table with composite primary key
(device_id, captured_at) and an index on captured_at for the retention
delete and time-bounded reads, plus the one-row-per-device info table.

Revision ID: 001
Revises: None
Create Date: 2026-10-18

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create power_usage_stats and device_info."""
    op.create_table(
        "power_usage_stats",
        sa.Column("device_id", sa.String(50), nullable=False),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("active_power_w", sa.Double(), nullable=True),
        sa.Column("voltage_v", sa.Double(), nullable=True),
        sa.Column("current_a", sa.Double(), nullable=True),
        sa.Column("frequency_hz", sa.Double(), nullable=True),
        sa.Column("total_energy_import_kwh", sa.Double(), nullable=True),
        sa.Column("power_on", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("brightness", sa.Integer(), nullable=True),
        sa.Column("switch_lock", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("device_id", "captured_at"),
    )
    op.create_index(
        "ix_power_usage_stats_captured_at",
        "power_usage_stats",
        ["captured_at"],
    )

    op.create_table(
        "device_info",
        sa.Column("device_id", sa.String(50), nullable=False),
        sa.Column("product_name", sa.String(100), nullable=True),
        sa.Column("serial", sa.String(50), nullable=True),
        sa.Column("firmware_version", sa.String(20), nullable=True),
        sa.Column("api_version", sa.String(10), nullable=True),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("device_id"),
    )
    op.create_index("ix_device_info_last_seen", "device_info", ["last_seen"])


def downgrade() -> None:
    """Drop both tables."""
    op.drop_index("ix_device_info_last_seen", table_name="device_info")
    op.drop_table("device_info")
    op.drop_index("ix_power_usage_stats_captured_at", table_name="power_usage_stats")
    op.drop_table("power_usage_stats")
