# backend/spa_booking/services/reservation_service.py
"""
Reservation Service for the Spa Booking platform

Runs the reservation lifecycle: hold, confirm, cancel (customer and admin
override) and reschedule.

A booking row and its slot's availability flag are two separate records that
are never written in one database transaction. Each operation is a short
saga of single-row conditional statements:

- A slot is claimed with a compare-and-swap update; zero matched rows is a
  definitive "somebody else has it".
- Booking transitions are guarded on the state this request observed; zero
  matched rows means another request or the expiry sweeper moved first, and
  the row is re-read to report what happened.
- When a later step fails, earlier steps are undone by compensating
  statements. A compensation that itself fails is logged at ERROR with the
  booking and slot ids for manual reconciliation.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import MAX_NOTES_LENGTH
from ..core.enums import CancelledBy
from ..core.exceptions import (
    BusinessRuleException,
    CancellationTooLateException,
    ConflictException,
    InvalidBookingStateException,
    NotFoundException,
    RepositoryException,
    ReservationExpiredException,
    ServiceException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, hours_until, now_utc
from ..core.ulid_helper import is_valid_ulid
from ..models.booking import ACTIVE_STATUSES, Booking, BookingStatus, PaymentStatus
from ..models.slot import TimeSlot
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


@dataclass
class HoldResult:
    """A freshly created pending hold."""

    booking: Booking
    expires_at: datetime
    expires_in_seconds: int


class ReservationService(BaseService):
    """
    Service layer for the reservation lifecycle.

    All methods accept an optional ``now`` so callers (and tests) can pin
    the clock; it defaults to the current UTC time.
    """

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.service_repository = RepositoryFactory.create_service_repository(db)
        self._notification_service = notification_service

    # Public operations

    @BaseService.measure_operation("create_hold")
    def create_hold(
        self,
        customer_id: str,
        provider_id: str,
        slot_id: str,
        service_id: str,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> HoldResult:
        """
        Place a time-limited pending hold on a slot.

        Raises:
            ValidationException: malformed identifiers or notes
            NotFoundException: slot or active service missing
            SlotUnavailableException: slot taken, or not this therapist's
            BusinessRuleException: slot shorter than the service
            ServiceException: the booking could not be written
        """
        self._require_ids(
            customer_id=customer_id,
            provider_id=provider_id,
            slot_id=slot_id,
            service_id=service_id,
        )
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationException(
                f"Notes must be at most {MAX_NOTES_LENGTH} characters",
                code="NOTES_TOO_LONG",
                details={"field": "notes"},
            )
        current = self._now(now)

        slot = self._load_slot(slot_id)
        if slot.provider_id != provider_id:
            raise SlotUnavailableException(
                "Time slot does not belong to the selected therapist",
                details={"slot_id": slot_id, "provider_id": provider_id},
            )
        if not slot.is_available:
            raise SlotUnavailableException(details={"slot_id": slot_id})

        service = self._call(
            "load service", lambda: self.service_repository.get_active(service_id)
        )
        if service is None:
            raise NotFoundException(
                "Service not found or inactive",
                code="SERVICE_NOT_FOUND",
                details={"service_id": service_id},
            )
        self._require_fits(slot, int(service.duration))

        expires_at = current + timedelta(minutes=settings.reservation_timeout_minutes)
        booking = self._call(
            "create reservation",
            lambda: self.booking_repository.create(
                customer_id=customer_id,
                provider_id=provider_id,
                service_id=service_id,
                slot_id=slot_id,
                booking_date=slot.slot_date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                service_name=service.name,
                service_price=service.price,
                service_duration=service.duration,
                status=BookingStatus.PENDING.value,
                expires_at=expires_at,
                payment_status=PaymentStatus.PENDING.value,
                payment_amount=service.price,
                notes=notes,
                created_at=current,
            ),
        )
        booking_id = str(booking.id)

        claim_error: Optional[RepositoryException] = None
        try:
            claimed = self.slot_repository.claim_slot(slot_id)
        except RepositoryException as exc:
            claim_error = exc
            claimed = False

        if not claimed:
            self._compensate(
                "create_hold",
                "delete_hold",
                lambda: self.booking_repository.delete(booking_id),
                booking_id=booking_id,
                slot_ids=[slot_id],
            )
            if claim_error is not None:
                self.logger.error(f"Claiming slot {slot_id} failed: {claim_error}")
            else:
                prometheus_metrics.inc_slot_conflict("create_hold")
            raise SlotUnavailableException(details={"slot_id": slot_id})

        prometheus_metrics.inc_transition("hold")
        self.log_operation("create_hold", booking_id=booking_id, slot_id=slot_id)
        return HoldResult(
            booking=booking,
            expires_at=expires_at,
            expires_in_seconds=booking.expires_in_seconds(current),
        )

    @BaseService.measure_operation("confirm_booking")
    def confirm(self, booking_id: str, customer_id: str, now: Optional[datetime] = None) -> Booking:
        """
        Confirm a pending hold and mark it paid.

        Raises:
            NotFoundException: booking missing (or swept) or not the caller's
            InvalidBookingStateException: booking is not pending
            ReservationExpiredException: the hold has lapsed
        """
        self._require_ids(booking_id=booking_id, customer_id=customer_id)
        current = self._now(now)

        booking = self._call(
            "load booking", lambda: self.booking_repository.get_owned(booking_id, customer_id)
        )
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        if booking.status != BookingStatus.PENDING.value:
            raise InvalidBookingStateException(str(booking.status), "confirm")
        if booking.is_expired(current):
            raise ReservationExpiredException(booking_id)

        confirmed = self._call(
            "confirm booking",
            lambda: self.booking_repository.confirm_pending(booking_id, customer_id, current),
        )
        if not confirmed:
            self._raise_for_lost_race(
                booking_id, "confirm", (BookingStatus.PENDING.value,), current, customer_id
            )

        booking = self._reload(booking_id)
        prometheus_metrics.inc_transition("confirm")
        self.log_operation("confirm_booking", booking_id=booking_id)
        self._notify(lambda svc: svc.send_booking_confirmation(booking), booking_id)
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel(self, booking_id: str, customer_id: str, now: Optional[datetime] = None) -> Booking:
        """
        Customer-initiated cancellation.

        Confirmed bookings are subject to the minimum cancellation notice.
        """
        return self._cancel(booking_id, customer_id, admin=False, now=now)

    @BaseService.measure_operation("admin_cancel_booking")
    def admin_cancel(self, booking_id: str, admin_id: str, now: Optional[datetime] = None) -> Booking:
        """Administrative cancellation: any owner, no notice policy."""
        return self._cancel(booking_id, admin_id, admin=True, now=now)

    @BaseService.measure_operation("reschedule_booking")
    def reschedule(
        self,
        booking_id: str,
        new_slot_id: str,
        admin_id: str,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Move a pending or confirmed booking to another slot of the same therapist.

        Steps: repoint the booking, release the old slot, claim the new slot,
        then make sure the booking was not swept meanwhile. Each failure undoes
        the steps before it.
        """
        self._require_ids(booking_id=booking_id, new_slot_id=new_slot_id, admin_id=admin_id)
        current = self._now(now)

        booking = self._reload(booking_id)
        if booking.status not in ACTIVE_STATUSES:
            raise InvalidBookingStateException(str(booking.status), "reschedule")
        if booking.is_expired(current):
            raise ReservationExpiredException(booking_id)

        new_slot = self._load_slot(new_slot_id)
        old_slot_id = str(booking.slot_id)
        if new_slot.id == old_slot_id:
            raise BusinessRuleException(
                "New slot must differ from the current slot",
                code="SAME_SLOT",
                details={"slot_id": new_slot_id},
            )
        if new_slot.provider_id != booking.provider_id:
            raise BusinessRuleException(
                "New slot must belong to the same therapist",
                code="PROVIDER_MISMATCH",
                details={"slot_id": new_slot_id},
            )
        if not new_slot.is_available:
            raise SlotUnavailableException(details={"slot_id": new_slot_id})
        self._require_fits(new_slot, int(booking.service_duration))

        old_date, old_start, old_end = booking.booking_date, booking.start_time, booking.end_time

        def restore_booking_fields() -> bool:
            return self.booking_repository.move_to_slot(
                booking_id, new_slot_id, old_slot_id, old_date, old_start, old_end
            )

        # 1. Repoint the booking
        moved = self._call(
            "move booking",
            lambda: self.booking_repository.move_to_slot(
                booking_id,
                old_slot_id,
                new_slot_id,
                new_slot.slot_date,
                new_slot.start_time,
                new_slot.end_time,
                now=current,
            ),
        )
        if not moved:
            self._raise_for_lost_race(booking_id, "reschedule", ACTIVE_STATUSES, current)

        # 2. Release the old slot
        try:
            self.slot_repository.release_slot(old_slot_id)
        except RepositoryException as exc:
            self.logger.error(f"Releasing slot {old_slot_id} during reschedule failed: {exc}")
            self._compensate(
                "reschedule",
                "restore_booking_fields",
                restore_booking_fields,
                booking_id=booking_id,
                slot_ids=[old_slot_id, new_slot_id],
            )
            raise ServiceException(
                "Failed to release the current slot; reschedule was rolled back",
                code="SLOT_RELEASE_FAILED",
                details={"booking_id": booking_id},
            ) from exc

        # 3. Claim the new slot
        claim_error: Optional[RepositoryException] = None
        try:
            claimed = self.slot_repository.claim_slot(new_slot_id)
        except RepositoryException as exc:
            claim_error = exc
            claimed = False

        if not claimed:
            # Undo in reverse: take the old slot back, then repoint the booking
            self._compensate(
                "reschedule",
                "reclaim_old_slot",
                lambda: self.slot_repository.claim_slot(old_slot_id),
                booking_id=booking_id,
                slot_ids=[old_slot_id, new_slot_id],
                must_match=True,
            )
            self._compensate(
                "reschedule",
                "restore_booking_fields",
                restore_booking_fields,
                booking_id=booking_id,
                slot_ids=[old_slot_id, new_slot_id],
            )
            if claim_error is not None:
                raise ServiceException(
                    "Failed to claim the new slot; reschedule was rolled back",
                    code="SLOT_CLAIM_FAILED",
                    details={"booking_id": booking_id},
                ) from claim_error
            prometheus_metrics.inc_slot_conflict("reschedule")
            raise SlotUnavailableException(details={"slot_id": new_slot_id})

        # 4. The sweeper may have deleted a pending hold mid-saga
        rescheduled = self._call(
            "load booking", lambda: self.booking_repository.get_by_id(booking_id)
        )
        if rescheduled is None:
            self._compensate(
                "reschedule",
                "release_new_slot",
                lambda: self.slot_repository.release_slot(new_slot_id),
                booking_id=booking_id,
                slot_ids=[new_slot_id],
            )
            raise ReservationExpiredException(booking_id)

        prometheus_metrics.inc_transition("reschedule")
        self.log_operation(
            "reschedule_booking",
            booking_id=booking_id,
            from_slot_id=old_slot_id,
            to_slot_id=new_slot_id,
            admin_id=admin_id,
        )
        return rescheduled

    # Private helper methods

    def _cancel(self, booking_id: str, actor_id: str, admin: bool, now: Optional[datetime]) -> Booking:
        self._require_ids(booking_id=booking_id, actor_id=actor_id)
        current = self._now(now)

        if admin:
            booking = self._call(
                "load booking", lambda: self.booking_repository.get_by_id(booking_id)
            )
        else:
            booking = self._call(
                "load booking", lambda: self.booking_repository.get_owned(booking_id, actor_id)
            )
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        if not booking.is_cancellable:
            raise InvalidBookingStateException(str(booking.status), "cancel")

        required_hours = settings.min_cancellation_notice_hours
        if not admin and booking.status == BookingStatus.CONFIRMED.value and required_hours > 0:
            remaining = hours_until(booking.booking_date, booking.start_time, current)
            if remaining < required_hours:
                raise CancellationTooLateException(required_hours, remaining)

        prior_status = str(booking.status)
        prior_expires_at = booking.expires_at
        prior_updated_at = booking.updated_at
        slot_id = str(booking.slot_id)

        cancelled = self._call(
            "cancel booking",
            lambda: self.booking_repository.mark_cancelled(
                booking_id,
                prior_status,
                actor_id,
                current,
                customer_id=None if admin else actor_id,
            ),
        )
        if not cancelled:
            self._raise_for_lost_race(
                booking_id, "cancel", ACTIVE_STATUSES, current, None if admin else actor_id
            )

        try:
            released = self.slot_repository.release_slot(slot_id)
        except RepositoryException as exc:
            self.logger.error(f"Releasing slot {slot_id} for cancelled booking {booking_id} failed: {exc}")
            self._compensate(
                "cancel",
                "restore_booking_status",
                lambda: self.booking_repository.restore_after_cancel(
                    booking_id, prior_status, prior_expires_at, prior_updated_at
                ),
                booking_id=booking_id,
                slot_ids=[slot_id],
            )
            raise ServiceException(
                "Failed to release the time slot; cancellation was rolled back",
                code="SLOT_RELEASE_FAILED",
                details={"booking_id": booking_id},
            ) from exc
        if not released:
            self.logger.warning(f"Slot {slot_id} of cancelled booking {booking_id} no longer exists")

        booking = self._reload(booking_id)
        prometheus_metrics.inc_transition("admin_cancel" if admin else "cancel")
        self.log_operation(
            "cancel_booking", booking_id=booking_id, slot_id=slot_id, admin_override=admin
        )
        cancelled_by = CancelledBy.ADMIN if admin else CancelledBy.CUSTOMER
        self._notify(lambda svc: svc.send_booking_cancellation(booking, cancelled_by), booking_id)
        return booking

    def _raise_for_lost_race(
        self,
        booking_id: str,
        action: str,
        expected_statuses: Iterable[str],
        now: datetime,
        customer_id: Optional[str] = None,
    ) -> None:
        """
        A guarded transition matched no rows: work out why and raise.

        Always raises.
        """
        if customer_id is not None:
            booking = self._call(
                "load booking", lambda: self.booking_repository.get_owned(booking_id, customer_id)
            )
        else:
            booking = self._call(
                "load booking", lambda: self.booking_repository.get_by_id(booking_id)
            )
        if booking is None:
            # Deleted by the sweeper (or never owned by this caller)
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        if booking.status not in tuple(expected_statuses):
            raise InvalidBookingStateException(str(booking.status), action)
        if booking.is_expired(now):
            raise ReservationExpiredException(booking_id)
        raise ConflictException(
            "Booking was modified by another request; please retry",
            code="CONCURRENT_MODIFICATION",
            details={"booking_id": booking_id},
        )

    def _compensate(
        self,
        operation: str,
        step: str,
        action: Callable[[], Any],
        booking_id: str,
        slot_ids: Iterable[str],
        must_match: bool = False,
    ) -> bool:
        """
        Run one compensating statement.

        Never raises: the caller is already unwinding and re-raises its own
        error. Failures are logged with everything needed to reconcile by hand.

        With ``must_match`` a statement that matches no rows is a failure too:
        a slot that cannot be reclaimed has been taken by another booking.
        """
        slots = list(slot_ids)
        try:
            result = action()
        except Exception as exc:
            self._compensation_failed(operation, step, booking_id, slots, str(exc))
            return False

        if result is False:
            if must_match:
                self._compensation_failed(
                    operation, step, booking_id, slots, "no row matched the compensating statement"
                )
                return False
            # Nothing matched; the row already reflects the compensated state
            prometheus_metrics.inc_compensation(operation, step, "noop")
            self.logger.warning(
                f"Compensation {operation}.{step} matched no rows for booking {booking_id} "
                f"(slots {slots})",
                extra={"booking_id": booking_id, "slot_ids": slots, "step": step},
            )
            return False

        prometheus_metrics.inc_compensation(operation, step, "success")
        self.logger.info(f"Compensation {operation}.{step} applied for booking {booking_id}")
        return True

    def _compensation_failed(
        self, operation: str, step: str, booking_id: str, slots: List[str], reason: str
    ) -> None:
        prometheus_metrics.inc_compensation(operation, step, "failed")
        self.logger.error(
            f"Compensation {operation}.{step} failed for booking {booking_id} "
            f"(slots {slots}); manual reconciliation required: {reason}",
            extra={"booking_id": booking_id, "slot_ids": slots, "step": step},
        )

    def _call(self, what: str, func: Callable[[], Any]) -> Any:
        """Run a repository call, surfacing store failures as ServiceException."""
        try:
            return func()
        except RepositoryException as exc:
            self.logger.error(f"Failed to {what}: {exc}")
            raise ServiceException(f"Failed to {what}") from exc

    def _reload(self, booking_id: str) -> Booking:
        booking = self._call("load booking", lambda: self.booking_repository.get_by_id(booking_id))
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def _load_slot(self, slot_id: str) -> TimeSlot:
        slot = self._call("load slot", lambda: self.slot_repository.get_by_id(slot_id))
        if slot is None:
            raise NotFoundException(
                "Time slot not found", code="SLOT_NOT_FOUND", details={"slot_id": slot_id}
            )
        return slot

    @staticmethod
    def _require_fits(slot: TimeSlot, duration_minutes: int) -> None:
        if not slot.fits(duration_minutes):
            raise BusinessRuleException(
                f"Time slot is {slot.window_minutes} minutes; the service needs {duration_minutes}",
                code="SLOT_TOO_SHORT",
                details={
                    "slot_id": slot.id,
                    "slot_minutes": slot.window_minutes,
                    "service_duration": duration_minutes,
                },
            )

    @staticmethod
    def _require_ids(**identifiers: Optional[str]) -> None:
        for field, value in identifiers.items():
            if not value or not is_valid_ulid(value):
                raise ValidationException(
                    f"Invalid {field}", code="INVALID_ID", details={"field": field}
                )

    @staticmethod
    def _now(now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else now_utc()

    def _get_notification_service(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(self.db)
        return self._notification_service

    def _notify(self, send: Callable[[NotificationService], Any], booking_id: str) -> None:
        """Notifications never affect the outcome of a booking operation."""
        try:
            send(self._get_notification_service())
        except Exception as exc:
            self.logger.warning(f"Notification for booking {booking_id} failed: {exc}")
