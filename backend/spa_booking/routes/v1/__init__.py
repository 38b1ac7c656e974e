# backend/spa_booking/routes/v1/__init__.py
"""Versioned API routers (mounted under /api/v1) plus operational endpoints."""

from . import bookings, health, prometheus

__all__ = ["bookings", "health", "prometheus"]
