"""booking schema

Revision ID: 0001_booking_schema
Revises: None
Create Date: 2025-01-02
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_booking_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "rooms",
        sa.Column("room_id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("base_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint("base_price >= 0", name="ck_rooms_base_price"),
        sa.CheckConstraint("base_quantity >= 0", name="ck_rooms_base_quantity"),
    )

    # One override per (room, date).
    op.create_table(
        "room_date_overrides",
        sa.Column("room_id", sa.Text(), sa.ForeignKey("rooms.room_id", ondelete="CASCADE"), nullable=False),
        sa.Column("date_iso", sa.Date(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=True),
        sa.Column("available_quantity", sa.Integer(), nullable=True),
        sa.Column("is_closed", sa.Boolean(), nullable=True),
        sa.Column("no_check_in", sa.Boolean(), nullable=True),
        sa.Column("no_check_out", sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint("room_id", "date_iso"),
    )

    op.create_table(
        "packages",
        sa.Column("package_id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("room_prices", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("no_check_in_dates", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("no_check_out_dates", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "discount_codes",
        sa.Column("code", sa.Text(), primary_key=True),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("min_nights", sa.Integer(), nullable=True),
        sa.Column("full_period_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_discount_percentage"),
    )

    op.create_table(
        "extra_services",
        sa.Column("extra_id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "reservations",
        sa.Column("reservation_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("nights", sa.Integer(), nullable=False),
        sa.Column("main_guest", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("additional_guests", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("observations", sa.Text(), nullable=True),
        sa.Column("rooms", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("extras", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("accommodation_subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_code", sa.Text(), nullable=True),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.CheckConstraint("check_out > check_in", name="ck_reservations_stay"),
        sa.CheckConstraint("status IN ('PENDING', 'CONFIRMED', 'CANCELED')", name="ck_reservations_status"),
    )

    op.create_index("idx_overrides_date", "room_date_overrides", ["date_iso"])
    op.create_index("idx_packages_window", "packages", ["start_date", "end_date"])
    op.create_index("idx_reservations_dates", "reservations", ["check_in", "check_out"])
    op.create_index("idx_reservations_status", "reservations", ["status"])


def downgrade() -> None:
    op.drop_index("idx_reservations_status", table_name="reservations")
    op.drop_index("idx_reservations_dates", table_name="reservations")
    op.drop_index("idx_packages_window", table_name="packages")
    op.drop_index("idx_overrides_date", table_name="room_date_overrides")

    op.drop_table("reservations")
    op.drop_table("extra_services")
    op.drop_table("discount_codes")
    op.drop_table("packages")
    op.drop_table("room_date_overrides")
    op.drop_table("rooms")
