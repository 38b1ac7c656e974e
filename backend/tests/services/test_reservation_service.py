from datetime import date, time, timedelta
import logging
from unittest.mock import patch

import pytest

from spa_booking.core.exceptions import (
    BusinessRuleException,
    CancellationTooLateException,
    InvalidBookingStateException,
    NotFoundException,
    RepositoryException,
    ReservationExpiredException,
    ServiceException,
    SlotUnavailableException,
    ValidationException,
)
from spa_booking.models import Booking, BookingStatus, TimeSlot
from spa_booking.monitoring.prometheus_metrics import REGISTRY
from spa_booking.services.expiry_sweeper import ExpirySweepService
from spa_booking.services.notification_service import NotificationService
from spa_booking.services.reservation_service import ReservationService

from tests.helpers import NOW


@pytest.fixture
def service(db, fake_email):
    return ReservationService(db, NotificationService(db, fake_email))


def _slot_available(db, slot_id):
    return db.query(TimeSlot).populate_existing().filter(TimeSlot.id == slot_id).one().is_available


def _booking(db, booking_id):
    return db.query(Booking).populate_existing().filter(Booking.id == booking_id).first()


# ---------------------------------------------------------------------------
# create_hold
# ---------------------------------------------------------------------------


def test_create_hold_claims_slot_and_snapshots_service(db, service, customer, therapist, slot, massage, settings_override):
    settings_override(reservation_timeout_minutes=5)

    hold = service.create_hold(customer.id, therapist.id, slot.id, massage.id, notes="Quiet room", now=NOW)

    assert hold.expires_at == NOW + timedelta(minutes=5)
    assert hold.expires_in_seconds == 300
    booking = _booking(db, hold.booking.id)
    assert booking.status == BookingStatus.PENDING.value
    assert booking.payment_status == "pending"
    assert booking.service_name == massage.name
    assert booking.service_price == massage.price
    assert booking.service_duration == 60
    assert booking.booking_date == slot.slot_date
    assert booking.notes == "Quiet room"
    assert _slot_available(db, slot.id) is False


def test_create_hold_on_taken_slot_conflicts(db, service, customer, therapist, slot, massage):
    service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)

    with pytest.raises(SlotUnavailableException):
        service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)

    assert db.query(Booking).count() == 1


def test_create_hold_rejects_slot_of_other_therapist(service, customer, make_user, slot, massage):
    other = make_user(full_name="Someone Else")

    with pytest.raises(SlotUnavailableException):
        service.create_hold(customer.id, other.id, slot.id, massage.id, now=NOW)


def test_create_hold_rejects_short_slot(db, service, customer, therapist, make_slot, make_service):
    short = make_slot(therapist, start=time(10, 0), end=time(10, 30))
    long_service = make_service(duration=60)

    with pytest.raises(BusinessRuleException) as exc:
        service.create_hold(customer.id, therapist.id, short.id, long_service.id, now=NOW)

    assert exc.value.code == "SLOT_TOO_SHORT"
    assert _slot_available(db, short.id) is True
    assert db.query(Booking).count() == 0


def test_create_hold_validates_input_before_touching_store(service, customer, therapist, slot, massage):
    with pytest.raises(ValidationException) as exc:
        service.create_hold(customer.id, therapist.id, "not-a-ulid", massage.id, now=NOW)
    assert exc.value.code == "INVALID_ID"

    with pytest.raises(ValidationException) as exc:
        service.create_hold(customer.id, therapist.id, slot.id, massage.id, notes="x" * 1001, now=NOW)
    assert exc.value.code == "NOTES_TOO_LONG"


def test_create_hold_missing_slot_or_inactive_service(service, customer, therapist, slot, make_service):
    inactive = make_service(is_active=False)

    with pytest.raises(NotFoundException) as exc:
        service.create_hold(customer.id, therapist.id, "01HF4G12ABCDEF3456789XYZAB", inactive.id, now=NOW)
    assert exc.value.code == "SLOT_NOT_FOUND"

    with pytest.raises(NotFoundException) as exc:
        service.create_hold(customer.id, therapist.id, slot.id, inactive.id, now=NOW)
    assert exc.value.code == "SERVICE_NOT_FOUND"


def test_create_hold_lost_claim_deletes_the_hold(db, service, customer, therapist, slot, massage):
    with patch.object(service.slot_repository, "claim_slot", return_value=False):
        with pytest.raises(SlotUnavailableException):
            service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)

    assert db.query(Booking).count() == 0


def test_create_hold_claim_error_deletes_the_hold(db, service, customer, therapist, slot, massage):
    with patch.object(service.slot_repository, "claim_slot", side_effect=RepositoryException("db down")):
        with pytest.raises(SlotUnavailableException):
            service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)

    assert db.query(Booking).count() == 0
    assert _slot_available(db, slot.id) is True


# ---------------------------------------------------------------------------
# confirm
# ---------------------------------------------------------------------------


def test_confirm_marks_paid_and_notifies(db, service, fake_email, customer, therapist, slot, massage):
    hold = service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)

    booking = service.confirm(hold.booking.id, customer.id, now=NOW + timedelta(minutes=1))

    assert booking.status == BookingStatus.CONFIRMED.value
    assert booking.payment_status == "paid"
    assert booking.expires_at is None
    assert booking.confirmed_at is not None
    assert fake_email.subjects_for(customer.email) == [f"Booking Confirmed: {massage.name}"]
    assert fake_email.subjects_for(therapist.email) == [f"New Booking: {massage.name}"]


def test_confirm_survives_notification_failure(db, customer, therapist, slot, massage):
    class Exploding:
        def send_booking_confirmation(self, booking):
            raise RuntimeError("boom")

    service = ReservationService(db, Exploding())
    hold = service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)

    booking = service.confirm(hold.booking.id, customer.id, now=NOW)

    assert booking.status == BookingStatus.CONFIRMED.value


def test_confirm_expired_hold_then_sweep_frees_slot(db, service, customer, therapist, slot, massage, settings_override):
    settings_override(reservation_timeout_minutes=5)
    hold = service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)
    later = NOW + timedelta(minutes=6)

    with pytest.raises(ReservationExpiredException):
        service.confirm(hold.booking.id, customer.id, now=later)

    assert ExpirySweepService(db).run_once(now=later) == 1
    assert _booking(db, hold.booking.id) is None
    assert _slot_available(db, slot.id) is True

    with pytest.raises(NotFoundException):
        service.confirm(hold.booking.id, customer.id, now=later)


def test_confirm_requires_ownership_and_pending(service, customer, make_user, therapist, slot, massage):
    stranger = make_user(full_name="Stranger")
    hold = service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)

    with pytest.raises(NotFoundException):
        service.confirm(hold.booking.id, stranger.id, now=NOW)

    service.confirm(hold.booking.id, customer.id, now=NOW)
    with pytest.raises(InvalidBookingStateException):
        service.confirm(hold.booking.id, customer.id, now=NOW)


def test_confirm_lost_race_to_sweeper_reports_not_found(db, service, customer, therapist, slot, massage):
    hold = service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)
    repo = service.booking_repository

    def swept_first(booking_id, customer_id, now):
        repo.delete(booking_id)
        return False

    with patch.object(repo, "confirm_pending", side_effect=swept_first):
        with pytest.raises(NotFoundException):
            service.confirm(hold.booking.id, customer.id, now=NOW)


# ---------------------------------------------------------------------------
# cancel / admin_cancel
# ---------------------------------------------------------------------------


def test_cancel_pending_hold_releases_slot(db, service, fake_email, customer, therapist, slot, massage):
    hold = service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)

    booking = service.cancel(hold.booking.id, customer.id, now=NOW)

    assert booking.status == BookingStatus.CANCELLED.value
    assert booking.expires_at is None
    assert booking.cancelled_by_id == customer.id
    assert _slot_available(db, slot.id) is True
    assert fake_email.subjects_for(customer.email) == [f"Booking Cancelled: {massage.name}"]


def test_cancel_twice_is_invalid_state(service, customer, therapist, slot, massage):
    hold = service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)
    service.cancel(hold.booking.id, customer.id, now=NOW)

    with pytest.raises(InvalidBookingStateException):
        service.cancel(hold.booking.id, customer.id, now=NOW)


def test_cancel_confirmed_inside_notice_window_is_rejected(db, service, customer, therapist, make_slot, massage, make_booking, settings_override):
    settings_override(min_cancellation_notice_hours=24, timezone="UTC")
    soon = make_slot(therapist, slot_date=date(2030, 6, 2), start=time(10, 0), end=time(11, 0))
    booking = make_booking(customer, soon, massage, status=BookingStatus.CONFIRMED)

    with pytest.raises(CancellationTooLateException) as exc:
        service.cancel(booking.id, customer.id, now=NOW)

    assert exc.value.details["required_hours"] == 24
    assert _booking(db, booking.id).status == BookingStatus.CONFIRMED.value
    assert _slot_available(db, soon.id) is False


def test_cancel_confirmed_outside_notice_window(db, service, customer, slot, massage, make_booking, settings_override):
    settings_override(min_cancellation_notice_hours=24, timezone="UTC")
    booking = make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)

    cancelled = service.cancel(booking.id, customer.id, now=NOW)

    assert cancelled.status == BookingStatus.CANCELLED.value
    assert _slot_available(db, slot.id) is True


def test_admin_cancel_skips_ownership_and_notice(db, service, fake_email, admin, customer, therapist, make_slot, massage, make_booking, settings_override):
    settings_override(min_cancellation_notice_hours=48, timezone="UTC")
    soon = make_slot(therapist, slot_date=date(2030, 6, 1), start=time(14, 0), end=time(15, 0))
    booking = make_booking(customer, soon, massage, status=BookingStatus.CONFIRMED)

    cancelled = service.admin_cancel(booking.id, admin.id, now=NOW)

    assert cancelled.status == BookingStatus.CANCELLED.value
    assert cancelled.cancelled_by_id == admin.id
    assert _slot_available(db, soon.id) is True
    customer_mail = [m for m in fake_email.sent if m["to"] == customer.email]
    assert "spa administration" in customer_mail[0]["html"]


def test_customer_cannot_cancel_someone_elses_booking(service, customer, make_user, slot, massage, make_booking):
    booking = make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)
    stranger = make_user(full_name="Stranger")

    with pytest.raises(NotFoundException):
        service.cancel(booking.id, stranger.id, now=NOW)


def test_cancel_release_failure_restores_booking(db, service, customer, therapist, slot, massage):
    hold = service.create_hold(customer.id, therapist.id, slot.id, massage.id, now=NOW)
    before = _booking(db, hold.booking.id)
    original_expiry, original_updated_at = before.expires_at, before.updated_at

    with patch.object(service.slot_repository, "release_slot", side_effect=RepositoryException("db down")):
        with pytest.raises(ServiceException) as exc:
            service.cancel(hold.booking.id, customer.id, now=NOW)

    assert exc.value.code == "SLOT_RELEASE_FAILED"
    restored = _booking(db, hold.booking.id)
    assert restored.status == BookingStatus.PENDING.value
    assert restored.expires_at == original_expiry
    assert restored.updated_at == original_updated_at
    assert restored.cancelled_at is None
    assert restored.cancelled_by_id is None
    assert _slot_available(db, slot.id) is False


# ---------------------------------------------------------------------------
# reschedule
# ---------------------------------------------------------------------------


def test_reschedule_moves_booking_between_slots(db, service, admin, customer, therapist, slot, make_slot, massage, make_booking):
    booking = make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)
    target = make_slot(therapist, slot_date=date(2030, 6, 15), start=time(15, 0), end=time(16, 0))

    moved = service.reschedule(booking.id, target.id, admin.id, now=NOW)

    assert moved.slot_id == target.id
    assert moved.booking_date == date(2030, 6, 15)
    assert moved.start_time == time(15, 0)
    assert moved.status == BookingStatus.CONFIRMED.value
    assert _slot_available(db, slot.id) is True
    assert _slot_available(db, target.id) is False


def test_reschedule_to_taken_slot_restores_everything(db, service, admin, customer, therapist, slot, make_slot, massage, make_booking):
    booking = make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)
    target = make_slot(therapist, slot_date=date(2030, 6, 15))

    # Someone takes the target after validation but before the claim
    original_claim = service.slot_repository.claim_slot

    def claim_after_competitor(slot_id):
        if slot_id == target.id:
            original_claim(target.id)
        return original_claim(slot_id)

    with patch.object(service.slot_repository, "claim_slot", side_effect=claim_after_competitor):
        with pytest.raises(SlotUnavailableException):
            service.reschedule(booking.id, target.id, admin.id, now=NOW)

    restored = _booking(db, booking.id)
    assert restored.slot_id == slot.id
    assert restored.booking_date == slot.slot_date
    assert _slot_available(db, slot.id) is False


def test_reschedule_release_failure_restores_booking_fields(db, service, admin, customer, therapist, slot, make_slot, massage, make_booking):
    booking = make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)
    target = make_slot(therapist, slot_date=date(2030, 6, 15), start=time(15, 0), end=time(16, 0))

    with patch.object(service.slot_repository, "release_slot", side_effect=RepositoryException("db down")):
        with pytest.raises(ServiceException) as exc:
            service.reschedule(booking.id, target.id, admin.id, now=NOW)

    assert exc.value.code == "SLOT_RELEASE_FAILED"
    restored = _booking(db, booking.id)
    assert restored.slot_id == slot.id
    assert restored.booking_date == slot.slot_date
    assert restored.start_time == slot.start_time
    assert restored.end_time == slot.end_time
    assert _slot_available(db, slot.id) is False
    assert _slot_available(db, target.id) is True


def test_reschedule_claim_error_restores_booking_and_old_slot(db, service, admin, customer, therapist, slot, make_slot, massage, make_booking):
    booking = make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)
    target = make_slot(therapist, slot_date=date(2030, 6, 15), start=time(15, 0), end=time(16, 0))
    original_claim = service.slot_repository.claim_slot

    def claim_fails_for_target(slot_id):
        if slot_id == target.id:
            raise RepositoryException("deadlock detected")
        return original_claim(slot_id)

    with patch.object(service.slot_repository, "claim_slot", side_effect=claim_fails_for_target):
        with pytest.raises(ServiceException) as exc:
            service.reschedule(booking.id, target.id, admin.id, now=NOW)

    assert exc.value.code == "SLOT_CLAIM_FAILED"
    restored = _booking(db, booking.id)
    assert restored.slot_id == slot.id
    assert restored.booking_date == slot.slot_date
    assert restored.start_time == slot.start_time
    assert restored.status == BookingStatus.CONFIRMED.value
    assert _slot_available(db, slot.id) is False
    assert _slot_available(db, target.id) is True


def test_reschedule_rollback_reports_old_slot_taken_by_another_hold(db, fake_email, service, admin, customer, therapist, slot, make_slot, make_user, massage, make_booking, caplog):
    booking = make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)
    target = make_slot(therapist, slot_date=date(2030, 6, 15))
    rival_customer = make_user(full_name="Rival Customer")
    rival = ReservationService(db, NotificationService(db, fake_email))
    original_claim = service.slot_repository.claim_slot
    original_move = service.booking_repository.move_to_slot
    calls = []

    def claim_after_rivals(slot_id):
        if slot_id == target.id:
            # Both slots are free at this point: the target was never taken
            # and the old slot has just been released.
            rival.create_hold(rival_customer.id, therapist.id, target.id, massage.id, now=NOW)
            rival.create_hold(rival_customer.id, therapist.id, slot.id, massage.id, now=NOW)
        calls.append(("claim", slot_id))
        return original_claim(slot_id)

    def recording_move(booking_id, from_slot_id, to_slot_id, *args, **kwargs):
        calls.append(("move", to_slot_id))
        return original_move(booking_id, from_slot_id, to_slot_id, *args, **kwargs)

    failed_before = REGISTRY.get_sample_value(
        "spa_booking_compensations_total",
        {"operation": "reschedule", "step": "reclaim_old_slot", "outcome": "failed"},
    ) or 0.0

    with caplog.at_level(logging.WARNING):
        with patch.object(service.slot_repository, "claim_slot", side_effect=claim_after_rivals), \
                patch.object(service.booking_repository, "move_to_slot", side_effect=recording_move):
            with pytest.raises(SlotUnavailableException):
                service.reschedule(booking.id, target.id, admin.id, now=NOW)

    assert calls == [
        ("move", target.id),
        ("claim", target.id),
        ("claim", slot.id),
        ("move", slot.id),
    ]
    failures = [
        record
        for record in caplog.records
        if record.levelno == logging.ERROR and getattr(record, "step", None) == "reclaim_old_slot"
    ]
    assert len(failures) == 1
    assert failures[0].booking_id == booking.id
    assert failures[0].slot_ids == [slot.id, target.id]
    assert "manual reconciliation required" in failures[0].getMessage()
    assert REGISTRY.get_sample_value(
        "spa_booking_compensations_total",
        {"operation": "reschedule", "step": "reclaim_old_slot", "outcome": "failed"},
    ) == failed_before + 1


def test_reschedule_validation(service, admin, customer, make_user, slot, make_slot, massage, make_booking):
    booking = make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)
    other_provider_slot = make_slot(make_user(full_name="Other Therapist"))

    with pytest.raises(BusinessRuleException) as exc:
        service.reschedule(booking.id, slot.id, admin.id, now=NOW)
    assert exc.value.code == "SAME_SLOT"

    with pytest.raises(BusinessRuleException) as exc:
        service.reschedule(booking.id, other_provider_slot.id, admin.id, now=NOW)
    assert exc.value.code == "PROVIDER_MISMATCH"


def test_reschedule_cancelled_booking_is_invalid(service, admin, customer, therapist, slot, make_slot, massage, make_booking):
    booking = make_booking(customer, slot, massage, status=BookingStatus.CANCELLED)
    target = make_slot(therapist, slot_date=date(2030, 6, 15))

    with pytest.raises(InvalidBookingStateException):
        service.reschedule(booking.id, target.id, admin.id, now=NOW)


def test_reschedule_swept_mid_saga_releases_new_slot(db, service, admin, customer, therapist, slot, make_slot, massage, make_booking):
    booking = make_booking(customer, slot, massage, expires_at=NOW + timedelta(minutes=2))
    target = make_slot(therapist, slot_date=date(2030, 6, 15))
    original_claim = service.slot_repository.claim_slot

    def claim_then_sweep(slot_id):
        claimed = original_claim(slot_id)
        service.booking_repository.delete(booking.id)
        return claimed

    with patch.object(service.slot_repository, "claim_slot", side_effect=claim_then_sweep):
        with pytest.raises(ReservationExpiredException):
            service.reschedule(booking.id, target.id, admin.id, now=NOW)

    assert _slot_available(db, target.id) is True
