# backend/spa_booking/models/service.py
"""
Priced spa service (massage, facial, ...).

The booking flow only reads services: a booking snapshots name, price and
duration at hold time so later catalog edits never rewrite history.
"""

from typing import Any

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Service(Base):
    """
    A bookable treatment.

    Attributes:
        id: ULID primary key
        name: Display name snapshotted onto bookings
        price: Price charged for one session
        duration: Session length in minutes
        is_active: Inactive services cannot be reserved
    """

    __tablename__ = "services"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    duration = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("duration > 0", name="check_service_duration_positive"),
        CheckConstraint("price >= 0", name="check_service_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Service {self.name} ({self.duration} min)>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": float(self.price),
            "duration": self.duration,
            "is_active": self.is_active,
        }
