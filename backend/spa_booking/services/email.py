# backend/spa_booking/services/email.py
"""
Email transport for the Spa Booking platform.

``EmailService`` sends through the Resend API; ``ConsoleEmailService`` logs
the message instead and is the default outside production. Pick one with
``build_email_service()``.
"""

import logging
import re
from typing import Any, Dict, Optional, Union

import resend

from ..core.config import settings
from ..core.exceptions import ServiceException
from .base import BaseService

logger = logging.getLogger(__name__)


def html_to_text(html_content: str) -> str:
    """Convert HTML content to plain text for better deliverability."""
    text = re.sub(r"<br\s*/?>", "\n", html_content, flags=re.IGNORECASE)
    text = re.sub(r"</p>", "\n\n", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    text = text.replace("&nbsp;", " ").replace("&amp;", "&")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n\s*\n+", "\n\n", text)
    return text.strip()


def _sender() -> str:
    return f"{settings.email_from_name} <{settings.email_from_address}>"


class EmailService(BaseService):
    """
    Service for sending emails using the Resend API.

    Raises ServiceException on delivery failure; callers that must never
    fail (notifications) catch it.
    """

    def __init__(self, api_key: Optional[str] = None):
        super().__init__()
        key = api_key
        if key is None and settings.resend_api_key is not None:
            key = settings.resend_api_key.get_secret_value()
        if not key:
            raise ServiceException("Resend API key not configured")
        resend.api_key = key
        self.from_email = _sender()

    @BaseService.measure_operation("send_email")
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send a single email.

        Returns:
            The Resend API response

        Raises:
            ServiceException: If email sending fails
        """
        email_data: Dict[str, Any] = {
            "from": self.from_email,
            "to": to_email,
            "subject": subject,
            "html": html_content,
            "text": text_content or html_to_text(html_content),
        }
        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            self.logger.error(f"Failed to send email to {to_email}: {e}")
            raise ServiceException(f"Email sending failed: {e}") from e

        self.log_operation("email_sent", to_email=to_email, subject=subject)
        return dict(response) if response else {}


class ConsoleEmailService:
    """Logs outgoing email instead of delivering it (development and tests)."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.logger.info(
            "[EMAIL] To: %s | Subject: %s\n%s",
            to_email,
            subject,
            text_content or html_to_text(html_content),
        )
        return {"id": None, "transport": "console"}


EmailSender = Union[EmailService, ConsoleEmailService]


def build_email_service() -> EmailSender:
    """Return the transport selected by ``EMAIL_PROVIDER``."""
    if settings.email_provider == "resend":
        return EmailService()
    return ConsoleEmailService()
