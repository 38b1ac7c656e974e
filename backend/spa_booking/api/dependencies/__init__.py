# backend/spa_booking/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_actor, require_admin
from .database import get_db
from .services import (
    get_booking_query_service,
    get_email_service,
    get_expiry_sweep_service,
    get_notification_service,
    get_reservation_service,
)

__all__ = [
    # Auth
    "get_current_actor",
    "require_admin",
    # Database
    "get_db",
    # Services
    "get_email_service",
    "get_notification_service",
    "get_reservation_service",
    "get_booking_query_service",
    "get_expiry_sweep_service",
]
