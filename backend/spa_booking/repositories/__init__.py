# backend/spa_booking/repositories/__init__.py
"""
Repository layer for the Spa Booking platform.

Key Components:
- BaseRepository: reads plus conditional, self-committing statements
- SlotRepository: compare-and-swap slot claim and release
- BookingRepository: guarded booking transitions and listings
- ServiceRepository / UserRepository: read-only lookups
- RepositoryFactory: one construction path for services

Usage:
    from spa_booking.repositories import RepositoryFactory

    slots = RepositoryFactory.create_slot_repository(db)
    if not slots.claim_slot(slot_id):
        ...
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .service_repository import ServiceRepository
from .slot_repository import SlotRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "RepositoryFactory",
    "ServiceRepository",
    "SlotRepository",
    "UserRepository",
]
