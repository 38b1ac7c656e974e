# backend/spa_booking/repositories/slot_repository.py
"""
Slot Repository for the Spa Booking platform

Owns the slot claim flag. ``claim_slot`` and ``release_slot`` are the only
statements that change ``is_available``; both are single-row conditional
updates so concurrent callers can never both win the same slot.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.slot import TimeSlot
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SlotRepository(BaseRepository[TimeSlot]):
    """Data access for therapist time slots."""

    def __init__(self, db: Session):
        super().__init__(db, TimeSlot)

    def claim_slot(self, slot_id: str) -> bool:
        """
        Compare-and-swap the slot from available to taken.

        Returns:
            True when this caller took the slot, False when it was already
            taken (or does not exist). False is a definitive conflict.
        """
        claimed = self.update_where(
            [TimeSlot.id == slot_id, TimeSlot.is_available.is_(True)],
            {"is_available": False},
            "claim slot",
        )
        if not claimed:
            self.logger.info("Slot %s was not available to claim", slot_id)
        return claimed == 1

    def release_slot(self, slot_id: str) -> bool:
        """
        Mark the slot available again.

        Idempotent: releasing a free slot matches the row and leaves it free.
        Returns False only when the slot does not exist.
        """
        return (
            self.update_where(
                [TimeSlot.id == slot_id],
                {"is_available": True},
                "release slot",
            )
            == 1
        )

    def list_available(
        self,
        start_date: date,
        end_date: date,
        provider_id: Optional[str] = None,
    ) -> List[TimeSlot]:
        """Available slots in an inclusive date range, ordered by date and time."""
        query = self._query().filter(
            TimeSlot.is_available.is_(True),
            TimeSlot.slot_date >= start_date,
            TimeSlot.slot_date <= end_date,
        )
        if provider_id:
            query = query.filter(TimeSlot.provider_id == provider_id)
        return self._read(
            "list available slots",
            query.order_by(TimeSlot.slot_date, TimeSlot.start_time),
        )
