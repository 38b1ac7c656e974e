# backend/alembic/versions/001_reservation_schema.py
"""Reservation schema - users, services, time slots, bookings

Revision ID: 001_reservation_schema
Revises:
Create Date: 2026-10-16 00:00:00.000000

Creates the four tables of the reservation lifecycle. A pending booking
always carries an expiry and no other status does; that pairing is enforced
by a check constraint so the sweeper can rely on it.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_reservation_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create reservation tables."""
    print("Creating reservation schema...")

    op.create_table(
        "users",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="customer"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "services",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("duration > 0", name="check_service_duration_positive"),
        sa.CheckConstraint("price >= 0", name="check_service_price_non_negative"),
    )
    op.create_index("ix_services_id", "services", ["id"])

    op.create_table(
        "time_slots",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("provider_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_time_slots_id", "time_slots", ["id"])
    op.create_index("ix_time_slots_provider_id", "time_slots", ["provider_id"])
    op.create_index("ix_time_slots_date_available", "time_slots", ["slot_date", "is_available"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("customer_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("provider_id", sa.String(26), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("service_id", sa.String(26), sa.ForeignKey("services.id"), nullable=False),
        sa.Column("slot_id", sa.String(26), sa.ForeignKey("time_slots.id"), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("service_name", sa.String(200), nullable=False),
        sa.Column("service_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("service_duration", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by_id", sa.String(26), sa.ForeignKey("users.id"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid')",
            name="ck_bookings_payment_status",
        ),
        sa.CheckConstraint(
            "(status = 'pending' AND expires_at IS NOT NULL) "
            "OR (status <> 'pending' AND expires_at IS NULL)",
            name="ck_bookings_expiry_matches_status",
        ),
        sa.CheckConstraint("service_duration > 0", name="check_duration_positive"),
        sa.CheckConstraint("service_price >= 0", name="check_price_non_negative"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"])
    op.create_index("ix_bookings_provider_id", "bookings", ["provider_id"])
    op.create_index("ix_bookings_slot_id", "bookings", ["slot_id"])
    op.create_index("ix_bookings_booking_date", "bookings", ["booking_date"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_expires_at", "bookings", ["expires_at"])
    op.create_index("ix_bookings_status_expires_at", "bookings", ["status", "expires_at"])

    print("Reservation schema created")


def downgrade() -> None:
    """Drop reservation tables."""
    op.drop_table("bookings")
    op.drop_table("time_slots")
    op.drop_table("services")
    op.drop_table("users")
