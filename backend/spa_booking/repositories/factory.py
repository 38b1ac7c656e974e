# backend/spa_booking/repositories/factory.py
"""
Repository Factory for the Spa Booking platform

Provides centralized creation of repository instances so services share one
construction path (and tests have one place to patch).
"""

from sqlalchemy.orm import Session

from .booking_repository import BookingRepository
from .service_repository import ServiceRepository
from .slot_repository import SlotRepository
from .user_repository import UserRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        return BookingRepository(db)

    @staticmethod
    def create_slot_repository(db: Session) -> SlotRepository:
        return SlotRepository(db)

    @staticmethod
    def create_service_repository(db: Session) -> ServiceRepository:
        return ServiceRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> UserRepository:
        return UserRepository(db)
