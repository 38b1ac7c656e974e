# backend/spa_booking/repositories/service_repository.py
"""Read access to the service catalog."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.service import Service
from .base_repository import BaseRepository


class ServiceRepository(BaseRepository[Service]):
    def __init__(self, db: Session):
        super().__init__(db, Service)

    def get_active(self, service_id: str) -> Optional[Service]:
        """Return the service only when it exists and is bookable."""
        return self._read(
            "retrieve active service",
            self._query().filter(Service.id == service_id, Service.is_active.is_(True)),
            first=True,
        )
