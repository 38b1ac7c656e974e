# backend/spa_booking/core/enums.py
"""
Core enums for the Spa Booking platform.

Roles are asserted by the upstream gateway; the engine only needs to tell
customers, therapists and administrators apart for ownership checks and
admin-override variants.
"""

from enum import Enum


class RoleName(str, Enum):
    """Standard role names."""

    ADMIN = "admin"
    THERAPIST = "therapist"
    CUSTOMER = "customer"


class CancelledBy(str, Enum):
    """Who initiated a cancellation (drives notification wording)."""

    CUSTOMER = "customer"
    ADMIN = "admin"
