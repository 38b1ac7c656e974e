# backend/spa_booking/tasks/__init__.py
"""
Celery tasks package.

Periodic booking work (daily reminders, expiry sweep) for deployments that
run a Celery worker and beat next to the API.
"""

from .celery_app import celery_app

__all__ = ["celery_app"]
