from datetime import timedelta

import pytest

from spa_booking.core.timezone_utils import get_local_today, now_utc
from spa_booking.models import Booking, BookingStatus
from spa_booking.services import notification_service
from spa_booking.tasks import booking_tasks
from spa_booking.tasks.beat_schedule import get_beat_schedule


@pytest.fixture
def task_sessions(monkeypatch, session_factory):
    monkeypatch.setattr(booking_tasks, "SessionLocal", session_factory)


def test_cleanup_task_runs_one_sweep(task_sessions, db, customer, slot, massage, make_booking):
    make_booking(customer, slot, massage, expires_at=now_utc() - timedelta(minutes=1))

    assert booking_tasks.cleanup_expired_reservations() == 1
    assert db.query(Booking).count() == 0


def test_reminder_task_sends_for_tomorrow(task_sessions, monkeypatch, fake_email, customer, therapist, massage, make_slot, make_booking, settings_override):
    settings_override(timezone="UTC")
    tomorrow = get_local_today() + timedelta(days=1)
    make_booking(customer, make_slot(therapist, slot_date=tomorrow), massage, status=BookingStatus.CONFIRMED)
    monkeypatch.setattr(notification_service, "build_email_service", lambda: fake_email)

    assert booking_tasks.send_daily_reminders() == 1
    assert len(fake_email.sent) == 2


def test_beat_schedule_includes_sweep_only_without_in_process_sweeper(settings_override):
    settings_override(scheduler_enabled=True, reminder_hour=8)
    schedule = get_beat_schedule()
    assert set(schedule) == {"send-daily-booking-reminders"}
    assert schedule["send-daily-booking-reminders"]["task"] == "bookings.send_daily_reminders"

    settings_override(scheduler_enabled=False, cleanup_job_interval_seconds=45)
    schedule = get_beat_schedule()
    assert schedule["cleanup-expired-reservations"]["schedule"] == timedelta(seconds=45)
