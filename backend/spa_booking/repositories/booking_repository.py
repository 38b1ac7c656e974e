# backend/spa_booking/repositories/booking_repository.py
"""
Booking Repository for the Spa Booking platform

Implements all data access operations for the reservation lifecycle.

Every state transition is one conditional UPDATE (or DELETE) keyed by the
booking id and guarded on the state the caller observed. A zero row count
means the guard no longer held: somebody else (another request or the expiry
sweeper) got there first. Callers re-read the row to classify what happened.

This repository handles:
- Hold creation and compensating deletes
- Guarded confirm / cancel / reschedule transitions and their restores
- Expired hold discovery and guarded deletes for the sweeper
- Customer and admin listing queries, counts and revenue
"""

from datetime import date, datetime, time
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..models.booking import (
    ACTIVE_STATUSES,
    REVENUE_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """
    Repository for booking data access.

    Transitions return booleans (row matched or not); reads always return
    fresh column values.
    """

    def __init__(self, db: Session):
        """Initialize with Booking model."""
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    # Reads

    def get_owned(self, booking_id: str, customer_id: str) -> Optional[Booking]:
        """Return the booking only when it belongs to the customer."""
        return self._read(
            "retrieve owned booking",
            self._query().filter(Booking.id == booking_id, Booking.customer_id == customer_id),
            first=True,
        )

    def find_expired_pending(self, now: datetime, limit: Optional[int] = None) -> List[Tuple[str, str]]:
        """
        Identify expired holds.

        Returns:
            (booking_id, slot_id) pairs for pending bookings whose expiry is
            strictly before ``now``.
        """
        query = (
            self.db.query(Booking.id, Booking.slot_id)
            .filter(
                Booking.status == BookingStatus.PENDING.value,
                Booking.expires_at.isnot(None),
                Booking.expires_at < now,
            )
            .order_by(Booking.expires_at)
        )
        if limit:
            query = query.limit(limit)
        rows = self._read("find expired holds", query)
        return [(row[0], row[1]) for row in rows]

    def list_for_customer(self, customer_id: str) -> List[Booking]:
        """All of a customer's bookings, latest first."""
        return self._read(
            "list customer bookings",
            self._query()
            .filter(Booking.customer_id == customer_id)
            .order_by(Booking.booking_date.desc(), Booking.start_time.desc()),
        )

    def _apply_filters(
        self,
        query: Query,
        provider_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Query:
        if provider_id:
            query = query.filter(Booking.provider_id == provider_id)
        if customer_id:
            query = query.filter(Booking.customer_id == customer_id)
        if date_from:
            query = query.filter(Booking.booking_date >= date_from)
        if date_to:
            query = query.filter(Booking.booking_date <= date_to)
        return query

    def list_filtered(
        self,
        status: Optional[str] = None,
        provider_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Booking]:
        """Admin listing, newest dates first."""
        query = self._apply_filters(self._query(), provider_id, customer_id, date_from, date_to)
        if status:
            query = query.filter(Booking.status == status)
        query = (
            query.order_by(Booking.booking_date.desc(), Booking.start_time.desc())
            .offset(offset)
            .limit(limit)
        )
        return self._read("list bookings", query)

    def count_by_status(
        self,
        provider_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Dict[str, int]:
        """Booking counts per status; every status is present, zero when unused."""
        query = self.db.query(Booking.status, func.count(Booking.id))
        query = self._apply_filters(query, provider_id, customer_id, date_from, date_to)
        rows = self._read("count bookings by status", query.group_by(Booking.status))
        counts = {status.value: 0 for status in BookingStatus}
        for status, total in rows:
            counts[str(status)] = int(total)
        return counts

    def revenue_total(
        self,
        provider_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Decimal:
        """Sum of service prices over confirmed and completed bookings."""
        query = self.db.query(func.coalesce(func.sum(Booking.service_price), 0)).filter(
            Booking.status.in_(REVENUE_STATUSES)
        )
        query = self._apply_filters(query, provider_id, customer_id, date_from, date_to)
        try:
            total = query.scalar()
        except SQLAlchemyError as exc:
            self.logger.error("Error computing revenue: %s", exc)
            raise RepositoryException(f"Failed to compute revenue: {exc}") from exc
        return Decimal(str(total or 0))

    def find_confirmed_on_date(self, booking_date: date) -> List[Booking]:
        """Confirmed bookings on a given day (reminder job)."""
        return self._read(
            "find confirmed bookings by date",
            self._query()
            .filter(
                Booking.booking_date == booking_date,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
            .order_by(Booking.start_time),
        )

    # Guarded transitions

    def confirm_pending(self, booking_id: str, customer_id: str, now: datetime) -> bool:
        """
        pending -> confirmed, only while the hold is unexpired and owned.

        Payment is a status flip to paid.
        """
        return (
            self.update_where(
                [
                    Booking.id == booking_id,
                    Booking.customer_id == customer_id,
                    Booking.status == BookingStatus.PENDING.value,
                    Booking.expires_at > now,
                ],
                {
                    "status": BookingStatus.CONFIRMED.value,
                    "payment_status": PaymentStatus.PAID.value,
                    "expires_at": None,
                    "confirmed_at": now,
                    "updated_at": now,
                },
                "confirm booking",
            )
            == 1
        )

    def mark_cancelled(
        self,
        booking_id: str,
        expected_status: str,
        cancelled_by_id: str,
        now: datetime,
        customer_id: Optional[str] = None,
    ) -> bool:
        """Move a booking to cancelled if it is still in ``expected_status``."""
        criteria: List[Any] = [
            Booking.id == booking_id,
            Booking.status == expected_status,
        ]
        if customer_id is not None:
            criteria.append(Booking.customer_id == customer_id)
        return (
            self.update_where(
                criteria,
                {
                    "status": BookingStatus.CANCELLED.value,
                    "expires_at": None,
                    "cancelled_at": now,
                    "cancelled_by_id": cancelled_by_id,
                    "updated_at": now,
                },
                "cancel booking",
            )
            == 1
        )

    def restore_after_cancel(
        self,
        booking_id: str,
        status: str,
        expires_at: Optional[datetime],
        updated_at: Optional[datetime],
    ) -> bool:
        """Undo ``mark_cancelled``: prior status, expiry and modification time come back verbatim."""
        return (
            self.update_where(
                [
                    Booking.id == booking_id,
                    Booking.status == BookingStatus.CANCELLED.value,
                ],
                {
                    "status": status,
                    "expires_at": expires_at,
                    "cancelled_at": None,
                    "cancelled_by_id": None,
                    "updated_at": updated_at,
                },
                "restore cancelled booking",
            )
            == 1
        )

    def move_to_slot(
        self,
        booking_id: str,
        from_slot_id: str,
        to_slot_id: str,
        booking_date: date,
        start_time: time,
        end_time: time,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Point the booking at another slot.

        Guarded on the booking still referencing ``from_slot_id`` and still
        being pending or confirmed. Also used to restore the old slot fields
        when a reschedule is compensated.
        """
        values: Dict[str, Any] = {
            "slot_id": to_slot_id,
            "booking_date": booking_date,
            "start_time": start_time,
            "end_time": end_time,
        }
        if now is not None:
            values["updated_at"] = now
        return (
            self.update_where(
                [
                    Booking.id == booking_id,
                    Booking.slot_id == from_slot_id,
                    Booking.status.in_(ACTIVE_STATUSES),
                ],
                values,
                "move booking to slot",
            )
            == 1
        )

    def delete_expired_hold(self, booking_id: str, slot_id: str, now: datetime) -> bool:
        """
        Delete one expired hold by identity.

        The row is left alone when it stopped being an expired pending hold on
        ``slot_id`` after it was selected (confirmed, cancelled, rescheduled).
        """
        return (
            self.delete_where(
                [
                    Booking.id == booking_id,
                    Booking.slot_id == slot_id,
                    Booking.status == BookingStatus.PENDING.value,
                    Booking.expires_at < now,
                ],
                "delete expired hold",
            )
            == 1
        )
