# backend/spa_booking/tasks/booking_tasks.py
"""
Celery tasks for the booking lifecycle.

Both tasks open their own short-lived session; failures are logged and
re-raised so the worker records them.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from ..database import SessionLocal
from ..services.expiry_sweeper import ExpirySweepService
from ..services.notification_service import NotificationService
from .celery_app import celery_app

logger = get_task_logger(__name__)


@contextmanager
def _session_scope() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@celery_app.task(name="bookings.send_daily_reminders", max_retries=0)
def send_daily_reminders() -> int:
    """Email reminders for every confirmed booking tomorrow."""
    with _session_scope() as session:
        sent = NotificationService(session).send_daily_reminders()
    logger.info("Sent reminders for %s bookings", sent)
    return sent


@celery_app.task(name="bookings.cleanup_expired_reservations", max_retries=0)
def cleanup_expired_reservations() -> int:
    """One expiry sweep pass."""
    with _session_scope() as session:
        deleted = ExpirySweepService(session).run_once()
    if deleted:
        logger.info("Deleted %s expired holds", deleted)
    return deleted
