# backend/spa_booking/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_query_service import BookingQueryService
from ...services.email import EmailSender, build_email_service
from ...services.expiry_sweeper import ExpirySweepService
from ...services.notification_service import NotificationService
from ...services.reservation_service import ReservationService
from ...services.template_service import TemplateService
from .database import get_db

logger = logging.getLogger(__name__)


def get_email_service() -> EmailSender:
    """Email transport selected by EMAIL_PROVIDER."""
    return build_email_service()


def get_notification_service(
    db: Session = Depends(get_db), email_service: EmailSender = Depends(get_email_service)
) -> NotificationService:
    """
    Get notification service instance.

    Args:
        db: Database session
        email_service: Email service for sending emails

    Returns:
        NotificationService instance
    """
    return NotificationService(db, email_service, TemplateService())


def get_reservation_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> ReservationService:
    """
    Get reservation service instance with all dependencies.

    Args:
        db: Database session
        notification_service: Notification service for sending emails

    Returns:
        ReservationService instance
    """
    return ReservationService(db, notification_service)


def get_booking_query_service(db: Session = Depends(get_db)) -> BookingQueryService:
    return BookingQueryService(db)


def get_expiry_sweep_service(db: Session = Depends(get_db)) -> ExpirySweepService:
    return ExpirySweepService(db)
