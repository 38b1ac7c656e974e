"""Principal asserted by the upstream gateway for each request."""

from __future__ import annotations

from dataclasses import dataclass

from .core.enums import RoleName


@dataclass(frozen=True)
class Actor:
    """The caller of a booking operation."""

    user_id: str
    role: RoleName = RoleName.CUSTOMER

    @property
    def id(self) -> str:
        return self.user_id

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN
