# backend/spa_booking/models/user.py
"""
User profile model.

Profiles are only read by the booking flow: to address notifications and to
seed data. Authentication is handled upstream by the gateway.
"""

from typing import Any

from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func
import ulid

from ..core.enums import RoleName
from ..database import Base


class User(Base):
    """
    A customer, therapist, or administrator.

    Attributes:
        id: ULID primary key
        email: Notification address
        full_name: Display name used in emails
        role: One of RoleName
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default=RoleName.CUSTOMER.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN.value

    @property
    def first_name(self) -> str:
        name = str(self.full_name or "").strip()
        return name.split(" ")[0] if name else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
        }
