# backend/spa_booking/services/__init__.py
"""
Service layer for the Spa Booking platform.

- ReservationService: hold / confirm / cancel / reschedule sagas
- BookingQueryService: read-side listings
- ExpirySweepService / ExpirySweeper: reclaim abandoned holds
- NotificationService: booking emails
"""

from .booking_query_service import BookingQueryService
from .expiry_sweeper import ExpirySweeper, ExpirySweepService
from .notification_service import NotificationService
from .reservation_service import HoldResult, ReservationService

__all__ = [
    "BookingQueryService",
    "ExpirySweepService",
    "ExpirySweeper",
    "HoldResult",
    "NotificationService",
    "ReservationService",
]
