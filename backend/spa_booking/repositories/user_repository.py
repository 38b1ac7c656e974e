# backend/spa_booking/repositories/user_repository.py
"""User profile lookups used to address notifications."""

from typing import Dict, Iterable

from sqlalchemy.orm import Session

from ..models.user import User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_many(self, user_ids: Iterable[str]) -> Dict[str, User]:
        """Batch-load profiles keyed by id; missing ids are simply absent."""
        ids = sorted({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}
        users = self._read("load users", self._query().filter(User.id.in_(ids)))
        return {user.id: user for user in users}
