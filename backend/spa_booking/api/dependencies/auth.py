# backend/spa_booking/api/dependencies/auth.py
"""
Caller identity dependencies.

Authentication happens upstream: the gateway forwards the verified user id
and role in ``X-User-Id`` and ``X-User-Role``. These dependencies only turn
those headers into an ``Actor`` and enforce the admin role where needed.
"""

import logging
from typing import Optional

from fastapi import Depends, Header

from ...core.enums import RoleName
from ...core.exceptions import ForbiddenException, UnauthorizedException
from ...core.ulid_helper import is_valid_ulid
from ...principal import Actor

logger = logging.getLogger(__name__)


def get_current_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Actor:
    """
    Build the caller from gateway headers.

    Raises:
        UnauthorizedException: missing or malformed identity headers
    """
    if not x_user_id:
        raise UnauthorizedException("Missing caller identity", code="NOT_AUTHENTICATED")
    user_id = x_user_id.strip()
    if not is_valid_ulid(user_id):
        raise UnauthorizedException("Invalid caller identity", code="INVALID_CALLER")

    role_value = (x_user_role or RoleName.CUSTOMER.value).strip().lower()
    try:
        role = RoleName(role_value)
    except ValueError:
        logger.warning(f"Rejected unknown role {role_value!r} for user {user_id}")
        raise UnauthorizedException("Invalid caller role", code="INVALID_CALLER") from None
    return Actor(user_id=user_id, role=role)


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Require the admin role."""
    if not actor.is_admin:
        raise ForbiddenException("Administrator access required", code="ADMIN_REQUIRED")
    return actor
