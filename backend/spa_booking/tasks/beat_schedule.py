# backend/spa_booking/tasks/beat_schedule.py
"""
Celery Beat schedule configuration.

Times are interpreted in the configured spa timezone (``TIMEZONE``).
"""

from datetime import timedelta
from typing import Any, Dict

from celery.schedules import crontab

from ..core.config import settings


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    """
    Build the periodic schedule from current settings.

    - Daily reminders for tomorrow's confirmed bookings at REMINDER_HOUR
    - Expiry sweep every CLEANUP_JOB_INTERVAL_SECONDS (only needed when the
      in-process sweeper is disabled)
    """
    schedule: Dict[str, Dict[str, Any]] = {
        "send-daily-booking-reminders": {
            "task": "bookings.send_daily_reminders",
            "schedule": crontab(hour=settings.reminder_hour, minute=0),
        },
    }
    if not settings.scheduler_enabled:
        schedule["cleanup-expired-reservations"] = {
            "task": "bookings.cleanup_expired_reservations",
            "schedule": timedelta(seconds=settings.cleanup_job_interval_seconds),
        }
    return schedule
