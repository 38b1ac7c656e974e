# backend/spa_booking/models/__init__.py
"""
SQLAlchemy models for the Spa Booking platform.

Importing this package registers every table on ``Base.metadata``.
"""

from .booking import Booking, BookingStatus, PaymentStatus
from .service import Service
from .slot import TimeSlot
from .user import User

__all__ = [
    "Booking",
    "BookingStatus",
    "PaymentStatus",
    "Service",
    "TimeSlot",
    "User",
]
