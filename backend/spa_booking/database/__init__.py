"""
Database engine, session factory, and metadata shared across the application.

Every repository mutation commits on its own: the booking store is treated
as a record store offering single-row conditional statements, never as a
multi-row transaction manager.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 5,
    # Fail fast when the pool is exhausted instead of blocking request handlers
    "pool_timeout": 5,
    "pool_recycle": 300,
    "pool_pre_ping": True,
}


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Engine options per dialect."""
    if _is_sqlite(db_url):
        # The sweeper thread shares the engine with request handlers
        return {"connect_args": {"check_same_thread": False}, "echo": settings.database_echo}
    kwargs = dict(_DEFAULT_POOL_KWARGS)
    kwargs["connect_args"] = {"connect_timeout": 5}
    kwargs["echo"] = settings.database_echo
    return kwargs


def create_db_engine(db_url: str) -> Engine:
    return create_engine(db_url, **_build_engine_kwargs(db_url))


engine: Engine = create_db_engine(settings.database_url)


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    connection_record.info["connect_time"] = datetime.now()
    logger.debug("Database connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for short-lived DB work outside request handling."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = [
    "Base",
    "SessionLocal",
    "create_db_engine",
    "engine",
    "get_db",
    "get_db_session",
]
