# backend/spa_booking/services/booking_query_service.py
"""
Read-side booking queries: available slots, a customer's bookings grouped
for display, and the admin overview with counts and revenue.

Nothing here mutates state.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.constants import (
    DEFAULT_QUERY_LIMIT,
    DEFAULT_SLOT_SEARCH_DAYS,
    MAX_QUERY_LIMIT,
    MAX_SLOT_SEARCH_DAYS,
)
from ..core.exceptions import NotFoundException, RepositoryException, ServiceException, ValidationException
from ..core.timezone_utils import get_local_today
from ..core.ulid_helper import is_valid_ulid
from ..models.booking import Booking, BookingStatus
from ..models.slot import TimeSlot
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass
class GroupedBookings:
    """A customer's bookings plus display buckets."""

    all: List[Booking]
    upcoming: List[Booking] = field(default_factory=list)
    pending: List[Booking] = field(default_factory=list)
    past: List[Booking] = field(default_factory=list)
    cancelled: List[Booking] = field(default_factory=list)


@dataclass
class AdminBookingOverview:
    bookings: List[Booking]
    counts: Dict[str, int]
    total_revenue: Decimal


def group_bookings(bookings: List[Booking], today: date) -> GroupedBookings:
    """
    Bucket bookings for display.

    upcoming: confirmed and dated today or later
    pending: pending holds
    past: confirmed or completed and dated before today
    cancelled: cancelled
    """
    grouped = GroupedBookings(all=list(bookings))
    for booking in bookings:
        if booking.is_upcoming(today):
            grouped.upcoming.append(booking)
        if booking.status == BookingStatus.PENDING.value:
            grouped.pending.append(booking)
        if booking.is_past(today):
            grouped.past.append(booking)
        if booking.status == BookingStatus.CANCELLED.value:
            grouped.cancelled.append(booking)
    return grouped


class BookingQueryService(BaseService):
    """Read-only booking queries."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.service_repository = RepositoryFactory.create_service_repository(db)

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self,
        service_id: str,
        start_date: date,
        end_date: Optional[date] = None,
        provider_id: Optional[str] = None,
    ) -> List[TimeSlot]:
        """
        Available slots long enough for the service.

        ``end_date`` defaults to a window of DEFAULT_SLOT_SEARCH_DAYS after
        ``start_date``.
        """
        if not is_valid_ulid(service_id):
            raise ValidationException("Invalid service_id", code="INVALID_ID", details={"field": "service_id"})
        if provider_id is not None and not is_valid_ulid(provider_id):
            raise ValidationException("Invalid provider_id", code="INVALID_ID", details={"field": "provider_id"})

        last_day = end_date or start_date + timedelta(days=DEFAULT_SLOT_SEARCH_DAYS)
        if last_day < start_date:
            raise ValidationException(
                "end_date must not be before start_date", code="INVALID_DATE_RANGE"
            )
        if (last_day - start_date).days > MAX_SLOT_SEARCH_DAYS:
            raise ValidationException(
                f"Date range cannot exceed {MAX_SLOT_SEARCH_DAYS} days", code="INVALID_DATE_RANGE"
            )

        try:
            # Reads share one session and run sequentially
            service = self.service_repository.get_active(service_id)
            if service is None:
                raise NotFoundException(
                    "Service not found or inactive",
                    code="SERVICE_NOT_FOUND",
                    details={"service_id": service_id},
                )
            slots = self.slot_repository.list_available(start_date, last_day, provider_id)
        except RepositoryException as exc:
            self.logger.error(f"Failed to fetch available slots: {exc}")
            raise ServiceException("Failed to fetch available slots") from exc

        duration = int(service.duration)
        return [slot for slot in slots if slot.fits(duration)]

    @BaseService.measure_operation("get_customer_bookings")
    def get_customer_bookings(
        self, customer_id: str, now: Optional[datetime] = None
    ) -> GroupedBookings:
        """All bookings of a customer, grouped against today in the spa's timezone."""
        if not is_valid_ulid(customer_id):
            raise ValidationException("Invalid customer_id", code="INVALID_ID")
        try:
            bookings = self.booking_repository.list_for_customer(customer_id)
        except RepositoryException as exc:
            self.logger.error(f"Failed to fetch bookings for {customer_id}: {exc}")
            raise ServiceException("Failed to fetch bookings") from exc
        return group_bookings(bookings, get_local_today(now))

    @BaseService.measure_operation("get_admin_overview")
    def get_admin_overview(
        self,
        status: Optional[str] = None,
        provider_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
        offset: int = 0,
    ) -> AdminBookingOverview:
        """
        Filtered booking list for administrators.

        Counts and revenue cover the same provider/customer/date filters; the
        status filter narrows only the list so the counts stay comparable.
        """
        if status is not None and status not in {s.value for s in BookingStatus}:
            raise ValidationException(f"Unknown status: {status}", code="INVALID_STATUS")
        for name, value in (("provider_id", provider_id), ("customer_id", customer_id)):
            if value is not None and not is_valid_ulid(value):
                raise ValidationException(f"Invalid {name}", code="INVALID_ID", details={"field": name})
        if date_from and date_to and date_to < date_from:
            raise ValidationException("date_to must not be before date_from", code="INVALID_DATE_RANGE")

        limit = max(1, min(limit, MAX_QUERY_LIMIT))
        filters = {
            "provider_id": provider_id,
            "customer_id": customer_id,
            "date_from": date_from,
            "date_to": date_to,
        }
        try:
            bookings = self.booking_repository.list_filtered(
                status=status, limit=limit, offset=max(0, offset), **filters
            )
            counts = self.booking_repository.count_by_status(**filters)
            revenue = self.booking_repository.revenue_total(**filters)
        except RepositoryException as exc:
            self.logger.error(f"Failed to build admin overview: {exc}")
            raise ServiceException("Failed to fetch bookings") from exc

        return AdminBookingOverview(bookings=bookings, counts=counts, total_revenue=revenue)
