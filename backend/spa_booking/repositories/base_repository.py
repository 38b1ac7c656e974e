# backend/spa_booking/repositories/base_repository.py
"""
Base Repository Pattern for the Spa Booking platform

Provides the foundation for all repository classes with:
- Common read helpers
- Type safety with generics
- Conditional single-row statements that commit on their own
- Uniform translation of SQLAlchemy errors into RepositoryException

Every mutation issued through a repository is its own unit of work. Services
coordinate multi-row changes with conditional statements and compensation,
never with a shared transaction.
"""

from contextlib import contextmanager
import logging
from typing import Any, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

# Type variable for generic model support
T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        """
        Initialize repository with database session and model.

        Args:
            db: SQLAlchemy session
            model: SQLAlchemy model class
        """
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def transaction(self, operation: str) -> Iterator[Session]:
        """
        Run one statement and commit it.

        Any SQLAlchemy failure rolls the session back and surfaces as
        RepositoryException; nothing partial is left pending on the session.
        """
        try:
            yield self.db
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            self.logger.error(
                "Integrity error during %s on %s: %s", operation, self.model.__name__, exc
            )
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.logger.error("Repository %s on %s failed: %s", operation, self.model.__name__, exc)
            raise RepositoryException(f"Failed to {operation} {self.model.__name__}: {exc}") from exc
        except Exception:
            self.db.rollback()
            raise

    def _read(self, operation: str, query: Query, first: bool = False) -> Any:
        try:
            return query.first() if first else query.all()
        except SQLAlchemyError as exc:
            self.logger.error("Error during %s on %s: %s", operation, self.model.__name__, exc)
            raise RepositoryException(f"Failed to {operation}: {exc}") from exc

    def _query(self) -> Query:
        # Always reload column values; another session (or the sweeper) may
        # have changed the row since this session last saw it.
        return self.db.query(self.model).populate_existing()

    def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its primary key, fresh from the store."""
        return self._read(
            "retrieve by id", self._query().filter(self.model.id == id), first=True  # type: ignore[attr-defined]
        )

    def create(self, **kwargs: Any) -> T:
        """Insert a new entity and commit it."""
        entity = self.model(**kwargs)
        with self.transaction("create"):
            self.db.add(entity)
        return entity

    def update_where(self, criteria: List[Any], values: Dict[str, Any], operation: str) -> int:
        """
        Conditional single-row update.

        Returns the number of rows matched; zero means the guard did not hold
        and nothing changed.
        """
        with self.transaction(operation):
            rowcount = (
                self.db.query(self.model)
                .filter(*criteria)
                .update(values, synchronize_session=False)
            )
        return int(rowcount or 0)

    def delete_where(self, criteria: List[Any], operation: str) -> int:
        """Conditional delete; returns the number of rows removed."""
        with self.transaction(operation):
            rowcount = self.db.query(self.model).filter(*criteria).delete(synchronize_session=False)
        return int(rowcount or 0)

    def delete(self, id: str) -> bool:
        """Delete an entity by its primary key. False when it did not exist."""
        return self.delete_where([self.model.id == id], "delete") > 0  # type: ignore[attr-defined]
