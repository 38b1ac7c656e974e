# backend/spa_booking/services/expiry_sweeper.py
"""
Expiry sweeper for abandoned holds.

Pending bookings whose hold has lapsed are deleted and their slots released.
The pass is select-then-delete-by-identity: candidates are read first, then
each row is deleted with a guard that it is still the same expired pending
hold on the same slot. Rows that a foreground request confirmed, cancelled
or rescheduled in between are left alone, and only slots of rows actually
deleted are released.

``ExpirySweepService`` is one pass over a session. ``ExpirySweeper`` drives
it from a dedicated daemon thread that is started and stopped explicitly.
"""

from datetime import datetime
import logging
import threading
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import RepositoryException, ServiceException
from ..core.timezone_utils import ensure_utc, now_utc
from ..database import SessionLocal
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class ExpirySweepService(BaseService):
    """A single sweep over expired holds."""

    def __init__(self, db: Session, batch_size: Optional[int] = None):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.batch_size = batch_size

    @BaseService.measure_operation("sweep_expired_holds")
    def run_once(self, now: Optional[datetime] = None) -> int:
        """
        Delete expired holds and release their slots.

        Per-row failures are logged and skipped; a slot release failure does
        not bring the deleted booking back.

        Returns:
            Number of bookings deleted

        Raises:
            ServiceException: the candidate query itself failed
        """
        current = ensure_utc(now) if now is not None else now_utc()
        try:
            candidates = self.booking_repository.find_expired_pending(current, self.batch_size)
        except RepositoryException as exc:
            prometheus_metrics.record_sweep(0, status="error")
            self.logger.error(f"[SWEEPER] Could not query expired holds: {exc}")
            raise ServiceException("Failed to query expired reservations") from exc

        if not candidates:
            prometheus_metrics.record_sweep(0)
            self.logger.debug("[SWEEPER] No expired holds")
            return 0

        self.logger.info(f"[SWEEPER] Found {len(candidates)} expired holds")
        deleted = 0
        release_failures = 0
        for booking_id, slot_id in candidates:
            try:
                removed = self.booking_repository.delete_expired_hold(booking_id, slot_id, current)
            except RepositoryException as exc:
                self.logger.error(
                    f"[SWEEPER] Failed to delete expired hold {booking_id}: {exc}",
                    extra={"booking_id": booking_id, "slot_id": slot_id},
                )
                continue

            if not removed:
                self.logger.info(f"[SWEEPER] Hold {booking_id} changed before deletion; skipped")
                continue

            deleted += 1
            try:
                self.slot_repository.release_slot(slot_id)
            except RepositoryException as exc:
                release_failures += 1
                self.logger.error(
                    f"[SWEEPER] Deleted hold {booking_id} but could not release slot {slot_id}; "
                    f"manual reconciliation required: {exc}",
                    extra={"booking_id": booking_id, "slot_id": slot_id},
                )

        prometheus_metrics.record_sweep(deleted, release_failures)
        self.logger.info(f"[SWEEPER] Deleted {deleted} expired holds")
        return deleted

    def manual_sweep(self) -> int:
        """Admin-triggered pass."""
        self.log_operation("manual_sweep")
        return self.run_once()


class ExpirySweeper:
    """
    Background driver for the sweep.

    ``start()`` runs one pass immediately and then one every
    ``cleanup_job_interval_seconds``; ``stop()`` wakes the thread and waits
    for it to exit.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        interval_seconds: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.cleanup_job_interval_seconds
        )
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self, now: Optional[datetime] = None) -> int:
        """One pass on a fresh session."""
        db = self.session_factory()
        try:
            return ExpirySweepService(db).run_once(now)
        finally:
            db.close()

    def start(self) -> bool:
        """Start the sweeper thread. Returns False if it is already running."""
        with self._lock:
            if self.is_running:
                return False
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name="expiry-sweeper",
                daemon=True,
            )
            self._thread.start()
        logger.info(f"[SWEEPER] Started; interval {self.interval_seconds}s")
        return True

    def stop(self, timeout: Optional[float] = 10.0) -> None:
        """Signal the thread and wait for it to finish its current pass."""
        with self._lock:
            thread = self._thread
            self._stop_event.set()
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("[SWEEPER] Did not stop within %ss", timeout)
        with self._lock:
            # A start() issued while we were joining owns the new thread
            if self._thread is thread and (thread is None or not thread.is_alive()):
                self._thread = None
        logger.info("[SWEEPER] Stopped")

    def _run(self, stop_event: threading.Event) -> None:
        self._run_safely()
        while not stop_event.wait(self.interval_seconds):
            self._run_safely()

    def _run_safely(self) -> None:
        # The loop must outlive any single failed pass.
        try:
            self.run_once()
        except Exception as exc:
            logger.error(f"[SWEEPER] Sweep failed: {exc}", exc_info=True)
