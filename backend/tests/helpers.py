"""Shared test helpers (importable as ``tests.helpers``)."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from spa_booking.core.enums import RoleName
from spa_booking.models import User

# Fixed reference instant for time-sensitive tests
NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


def auth_headers(user: User, role: Optional[RoleName] = None) -> Dict[str, str]:
    """Gateway identity headers for ``user``."""
    return {"X-User-Id": user.id, "X-User-Role": (role or RoleName(user.role)).value}


class FakeEmailService:
    """Records outgoing email instead of sending it."""

    def __init__(self, fail_for: Optional[str] = None) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.fail_for = fail_for

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        if self.fail_for and to_email == self.fail_for:
            raise RuntimeError("smtp down")
        self.sent.append({"to": to_email, "subject": subject, "html": html_content})
        return {"id": f"fake-{len(self.sent)}"}

    def subjects_for(self, email: str) -> List[str]:
        return [m["subject"] for m in self.sent if m["to"] == email]
