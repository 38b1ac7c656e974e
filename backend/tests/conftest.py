# backend/tests/conftest.py
"""
Pytest configuration for the booking backend.

Every test gets a fresh in-memory SQLite schema. Identity and clock are
explicit: factories take ids and datetimes, and services are called with a
pinned ``now`` wherever timing matters.
"""

import os
import sys

# CRITICAL: Set testing mode BEFORE any app imports!
os.environ["IS_TESTING"] = "true"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["EMAIL_PROVIDER"] = "console"
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_spa_booking.db")

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from spa_booking.api.dependencies.database import get_db
from spa_booking.core.config import settings
from spa_booking.core.enums import RoleName
from spa_booking.core.ulid_helper import generate_ulid
from spa_booking.database import Base
from spa_booking.main import app
from spa_booking.models import Booking, BookingStatus, PaymentStatus, Service, TimeSlot, User

from tests.helpers import NOW, FakeEmailService

settings.is_testing = True
settings.scheduler_enabled = False


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture
def make_user(db: Session):
    def _make(role: RoleName = RoleName.CUSTOMER, full_name: Optional[str] = None, **overrides: Any) -> User:
        user_id = overrides.pop("id", generate_ulid())
        user = User(
            id=user_id,
            email=overrides.pop("email", f"{user_id.lower()}@example.com"),
            full_name=full_name or f"{role.value.title()} {user_id[-4:]}",
            role=role.value,
            **overrides,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_service(db: Session):
    def _make(duration: int = 60, price: str = "80.00", is_active: bool = True, name: str = "Swedish Massage") -> Service:
        service = Service(
            id=generate_ulid(),
            name=name,
            description=f"{duration} minute {name.lower()}",
            price=Decimal(price),
            duration=duration,
            is_active=is_active,
        )
        db.add(service)
        db.commit()
        return service

    return _make


@pytest.fixture
def make_slot(db: Session):
    def _make(
        provider: User,
        slot_date: date = date(2030, 6, 10),
        start: time = time(10, 0),
        end: time = time(11, 0),
        is_available: bool = True,
    ) -> TimeSlot:
        slot = TimeSlot(
            id=generate_ulid(),
            provider_id=provider.id,
            slot_date=slot_date,
            start_time=start,
            end_time=end,
            is_available=is_available,
        )
        db.add(slot)
        db.commit()
        return slot

    return _make


@pytest.fixture
def make_booking(db: Session):
    """
    Insert a booking directly and mark its slot taken when the booking is active.
    """

    def _make(
        customer: User,
        slot: TimeSlot,
        service: Service,
        status: BookingStatus = BookingStatus.PENDING,
        expires_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
    ) -> Booking:
        if status == BookingStatus.PENDING and expires_at is None:
            expires_at = NOW + timedelta(minutes=5)
        if status != BookingStatus.PENDING:
            expires_at = None
        booking = Booking(
            id=generate_ulid(),
            customer_id=customer.id,
            provider_id=slot.provider_id,
            service_id=service.id,
            slot_id=slot.id,
            booking_date=slot.slot_date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            service_name=service.name,
            service_price=service.price,
            service_duration=service.duration,
            status=status.value,
            expires_at=expires_at,
            payment_status=(
                PaymentStatus.PAID.value
                if status in (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)
                else PaymentStatus.PENDING.value
            ),
            payment_amount=service.price,
            created_at=created_at or NOW,
        )
        db.add(booking)
        if status in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            slot.is_available = False
        db.commit()
        return booking

    return _make


@pytest.fixture
def customer(make_user) -> User:
    return make_user(RoleName.CUSTOMER, full_name="Casey Customer")


@pytest.fixture
def therapist(make_user) -> User:
    return make_user(RoleName.THERAPIST, full_name="Terry Therapist")


@pytest.fixture
def admin(make_user) -> User:
    return make_user(RoleName.ADMIN, full_name="Alex Admin")


@pytest.fixture
def massage(make_service) -> Service:
    return make_service()


@pytest.fixture
def slot(make_slot, therapist) -> TimeSlot:
    return make_slot(therapist)


@pytest.fixture
def fake_email() -> FakeEmailService:
    return FakeEmailService()


@pytest.fixture
def settings_override(monkeypatch):
    """Temporarily override attributes on the global settings object."""

    def _override(**values: Any) -> None:
        for key, value in values.items():
            monkeypatch.setattr(settings, key, value)

    return _override


# ============================================================================
# HTTP
# ============================================================================


@pytest.fixture
def client(db: Session):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
