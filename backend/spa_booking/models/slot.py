# backend/spa_booking/models/slot.py
"""
Therapist time slot model.

``is_available`` is the slot's claim flag: it is false exactly while one
pending or confirmed booking references the slot. It only ever changes
through the conditional claim/release statements in SlotRepository.
"""

from typing import Any

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, String, Time
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import minutes_between
from ..database import Base


class TimeSlot(Base):
    """
    A bookable window on a therapist's calendar.

    Dates and times are wall-clock values in the spa's configured timezone.
    """

    __tablename__ = "time_slots"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("ix_time_slots_date_available", "slot_date", "is_available"),)

    def __repr__(self) -> str:
        return (
            f"<TimeSlot {self.id}: provider={self.provider_id}, date={self.slot_date}, "
            f"time={self.start_time}-{self.end_time}, available={self.is_available}>"
        )

    @property
    def window_minutes(self) -> int:
        """Length of the slot in minutes."""
        return minutes_between(self.start_time, self.end_time)

    def fits(self, duration_minutes: int) -> bool:
        return self.window_minutes >= duration_minutes

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "provider_id": self.provider_id,
            "slot_date": self.slot_date.isoformat() if self.slot_date else None,
            "start_time": str(self.start_time) if self.start_time else None,
            "end_time": str(self.end_time) if self.end_time else None,
            "is_available": self.is_available,
        }
