"""Time slot schemas."""

from datetime import date, time

from .base import StandardizedModel


class TimeSlotResponse(StandardizedModel):
    id: str
    provider_id: str
    slot_date: date
    start_time: time
    end_time: time
    is_available: bool
