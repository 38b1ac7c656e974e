# backend/spa_booking/models/booking.py
"""
Booking model for the Spa Booking platform.

A booking starts life as a short-lived pending hold on one therapist slot and
either becomes confirmed (payment flips to paid), is cancelled, or is deleted
by the expiry sweeper once its hold lapses.

Service name, price and duration plus the slot's date and times are
snapshotted onto the row so history survives catalog edits.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, cast

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import ensure_utc
from ..database import Base


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"  # Hold awaiting confirmation
    CONFIRMED = "confirmed"  # Paid
    CANCELLED = "cancelled"
    COMPLETED = "completed"  # Set outside the booking flow


ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)
REVENUE_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)


class PaymentStatus(str, Enum):
    """Payment is a status flip; no processor is involved."""

    PENDING = "pending"
    PAID = "paid"


class Booking(Base):
    """
    Reservation of one slot by one customer for one service.

    Invariant: ``expires_at`` is set if and only if the booking is pending.
    """

    __tablename__ = "bookings"

    # Primary key
    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Core relationships
    customer_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    provider_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)
    slot_id = Column(String(26), ForeignKey("time_slots.id"), nullable=False, index=True)

    # Slot snapshot
    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    # Service snapshot
    service_name = Column(String(200), nullable=False)
    service_price = Column(Numeric(10, 2), nullable=False)
    service_duration = Column(Integer, nullable=False)

    # Lifecycle
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)

    # Payment
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_amount = Column(Numeric(10, 2), nullable=False)

    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Cancellation tracking
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint(
            "(status = 'pending' AND expires_at IS NOT NULL) "
            "OR (status <> 'pending' AND expires_at IS NULL)",
            name="ck_bookings_expiry_matches_status",
        ),
        CheckConstraint("service_duration > 0", name="check_duration_positive"),
        CheckConstraint("service_price >= 0", name="check_price_non_negative"),
        Index("ix_bookings_status_expires_at", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Booking {self.id}: customer={self.customer_id}, "
            f"provider={self.provider_id}, slot={self.slot_id}, date={self.booking_date}, "
            f"time={self.start_time}-{self.end_time}, status={self.status}>"
        )

    @property
    def is_pending(self) -> bool:
        return self.status == BookingStatus.PENDING.value

    @property
    def is_active(self) -> bool:
        """Pending or confirmed: the booking holds its slot."""
        return self.status in ACTIVE_STATUSES

    @property
    def is_cancellable(self) -> bool:
        """Check if booking can be cancelled."""
        return self.is_active

    def is_expired(self, now: datetime) -> bool:
        """True when this is a pending hold whose expiry has passed."""
        if not self.is_pending or self.expires_at is None:
            return False
        return ensure_utc(cast(datetime, self.expires_at)) <= ensure_utc(now)

    def expires_in_seconds(self, now: datetime) -> int:
        if self.expires_at is None:
            return 0
        remaining = (ensure_utc(cast(datetime, self.expires_at)) - ensure_utc(now)).total_seconds()
        return max(0, int(remaining))

    def is_upcoming(self, user_today: date) -> bool:
        """
        Confirmed and not yet in the past.

        Args:
            user_today: Today's date in the spa's timezone
        """
        booking_date = cast(date, self.booking_date)
        return self.status == BookingStatus.CONFIRMED.value and booking_date >= user_today

    def is_past(self, user_today: date) -> bool:
        """
        Confirmed or completed with a date before today.

        Args:
            user_today: Today's date in the spa's timezone
        """
        booking_date = cast(date, self.booking_date)
        return (
            self.status in (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value)
            and booking_date < user_today
        )

    def to_dict(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        data: dict[str, Any] = {
            "id": self.id,
            "customer_id": self.customer_id,
            "provider_id": self.provider_id,
            "service_id": self.service_id,
            "slot_id": self.slot_id,
            "booking_date": self.booking_date.isoformat() if self.booking_date else None,
            "start_time": str(self.start_time) if self.start_time else None,
            "end_time": str(self.end_time) if self.end_time else None,
            "service_name": self.service_name,
            "service_price": float(self.service_price),
            "service_duration": self.service_duration,
            "status": self.status,
            "expires_at": ensure_utc(self.expires_at).isoformat() if self.expires_at else None,
            "payment_status": self.payment_status,
            "payment_amount": float(self.payment_amount),
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancelled_by_id": self.cancelled_by_id,
        }
        if now is not None:
            data["expires_in_seconds"] = self.expires_in_seconds(now)
        return data
