# backend/spa_booking/services/notification_service.py
"""
Notification Service for the Spa Booking platform

Sends confirmation, cancellation and reminder emails to the customer and
the therapist of a booking. Notifications are fire-and-forget from the
booking flow's point of view: every failure is logged and counted, and none
is ever raised back into a reservation operation.
"""

from datetime import datetime, timedelta
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.enums import CancelledBy
from ..core.timezone_utils import get_local_today
from ..models.booking import Booking
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .email import EmailSender, build_email_service
from .template_service import TemplateService

logger = logging.getLogger(__name__)

CONFIRMATION_TEMPLATE = "email/booking/confirmation.html"
REMINDER_TEMPLATE = "email/booking/reminder.html"
CANCELLATION_TEMPLATE = "email/booking/cancellation.html"

Recipients = Dict[str, bool]


class NotificationService(BaseService):
    """
    Booking notifications to customer and therapist.

    Each public method returns which recipients were emailed, e.g.
    ``{"customer": True, "therapist": False}``.
    """

    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailSender] = None,
        template_service: Optional[TemplateService] = None,
    ) -> None:
        super().__init__(db)
        self.email_service = email_service or build_email_service()
        self.template_service = template_service or TemplateService()
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("send_booking_confirmation")
    def send_booking_confirmation(self, booking: Booking) -> Recipients:
        """Tell the customer their booking is confirmed and the therapist they have a new one."""
        return self._notify_both(
            "confirmation",
            booking,
            CONFIRMATION_TEMPLATE,
            customer_subject=f"Booking Confirmed: {booking.service_name}",
            therapist_subject=f"New Booking: {booking.service_name}",
        )

    @BaseService.measure_operation("send_booking_cancellation")
    def send_booking_cancellation(
        self, booking: Booking, cancelled_by: CancelledBy = CancelledBy.CUSTOMER
    ) -> Recipients:
        """Cancellation notice; wording depends on who cancelled."""
        subject = f"Booking Cancelled: {booking.service_name}"
        return self._notify_both(
            "cancellation",
            booking,
            CANCELLATION_TEMPLATE,
            customer_subject=subject,
            therapist_subject=subject,
            extra_context={"cancelled_by": CancelledBy(cancelled_by).value},
        )

    @BaseService.measure_operation("send_booking_reminder")
    def send_booking_reminder(self, booking: Booking) -> Recipients:
        return self._notify_both(
            "reminder",
            booking,
            REMINDER_TEMPLATE,
            customer_subject=f"Reminder: {booking.service_name} Tomorrow",
            therapist_subject="Reminder: Appointment Tomorrow",
        )

    @BaseService.measure_operation("send_daily_reminders")
    def send_daily_reminders(self, now: Optional[datetime] = None) -> int:
        """
        Remind everyone with a confirmed booking tomorrow (spa timezone).

        Returns:
            Number of bookings for which at least one reminder went out
        """
        tomorrow = get_local_today(now) + timedelta(days=1)
        bookings = self.booking_repository.find_confirmed_on_date(tomorrow)
        if not bookings:
            self.logger.info("No bookings for tomorrow")
            return 0

        self.logger.info(f"Found {len(bookings)} bookings for tomorrow ({tomorrow.isoformat()})")
        sent_count = 0
        for booking in bookings:
            result = self.send_booking_reminder(booking)
            if result["customer"] or result["therapist"]:
                sent_count += 1

        self.logger.info(f"Sent reminders for {sent_count} bookings")
        return sent_count

    # Private helper methods

    def _notify_both(
        self,
        event_type: str,
        booking: Booking,
        template_name: str,
        customer_subject: str,
        therapist_subject: str,
        extra_context: Optional[Dict[str, Any]] = None,
    ) -> Recipients:
        results: Recipients = {"customer": False, "therapist": False}
        try:
            people = self.user_repository.get_many([booking.customer_id, booking.provider_id])
        except Exception as e:
            self.logger.error(f"Could not load recipients for booking {booking.id}: {e}")
            prometheus_metrics.record_notification(event_type, "failed")
            return results

        customer = people.get(booking.customer_id)
        therapist = people.get(booking.provider_id)
        context: Dict[str, Any] = {
            "booking": booking,
            "customer_name": customer.full_name if customer else None,
            "therapist_name": therapist.full_name if therapist else None,
        }
        if extra_context:
            context.update(extra_context)

        results["customer"] = self._send_one(
            event_type, booking, customer, "customer", customer_subject, template_name, context
        )
        results["therapist"] = self._send_one(
            event_type, booking, therapist, "therapist", therapist_subject, template_name, context
        )
        self.logger.info(f"{event_type.capitalize()} emails for booking {booking.id}: {results}")
        return results

    def _send_one(
        self,
        event_type: str,
        booking: Booking,
        recipient: Optional[User],
        role: str,
        subject: str,
        template_name: str,
        context: Dict[str, Any],
    ) -> bool:
        if recipient is None or not recipient.email:
            prometheus_metrics.record_notification(event_type, "skipped")
            return False
        try:
            html = self.template_service.render_template(
                template_name,
                context,
                recipient=role,
                recipient_name=recipient.full_name,
                is_customer=role == "customer",
            )
            self.email_service.send_email(to_email=recipient.email, subject=subject, html_content=html)
        except Exception as e:
            self.logger.error(
                f"Failed to send {event_type} email to {role} for booking {booking.id}: {e}"
            )
            prometheus_metrics.record_notification(event_type, "failed")
            return False
        prometheus_metrics.record_notification(event_type, "sent")
        return True
