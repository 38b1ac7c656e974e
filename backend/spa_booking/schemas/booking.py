"""
Booking schemas for the Spa Booking platform.

Request models reject unknown fields; identifiers are checked as ULIDs by
the service layer so malformed ids surface as 400 validation errors with the
domain error envelope.
"""

from datetime import date, datetime, time
from typing import Dict, List, Optional

from pydantic import Field

from ..core.constants import MAX_NOTES_LENGTH
from .base import Money, StandardizedModel, StrictRequestModel


class ReserveRequest(StrictRequestModel):
    """Place a pending hold on a slot."""

    provider_id: str = Field(..., description="Therapist who owns the slot")
    slot_id: str = Field(..., description="Slot to hold")
    service_id: str = Field(..., description="Service being booked")
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH, description="Optional note")


class RescheduleRequest(StrictRequestModel):
    new_slot_id: str = Field(..., description="Slot to move the booking to")


class BookingResponse(StandardizedModel):
    id: str
    customer_id: str
    provider_id: str
    service_id: str
    slot_id: str
    booking_date: date
    start_time: time
    end_time: time
    service_name: str
    service_price: Money
    service_duration: int
    status: str
    expires_at: Optional[datetime] = None
    payment_status: str
    payment_amount: Money
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by_id: Optional[str] = None


class HoldResponse(StandardizedModel):
    """A new hold plus how long it lasts."""

    booking: BookingResponse
    expires_at: datetime
    expires_in_seconds: int


class GroupedBookingsResponse(StandardizedModel):
    upcoming: List[BookingResponse] = Field(default_factory=list)
    pending: List[BookingResponse] = Field(default_factory=list)
    past: List[BookingResponse] = Field(default_factory=list)
    cancelled: List[BookingResponse] = Field(default_factory=list)


class MyBookingsResponse(StandardizedModel):
    all: List[BookingResponse]
    grouped: GroupedBookingsResponse


class AdminBookingsResponse(StandardizedModel):
    bookings: List[BookingResponse]
    counts: Dict[str, int]
    total_revenue: Money


class CleanupResponse(StandardizedModel):
    deleted: int
    message: str
