"""
Prometheus metrics for the Spa Booking backend.

Service timings come from the @measure_operation decorator; the reservation
engine and the expiry sweeper add domain counters (compensations, sweeps,
notifications) on top.
"""

from threading import Lock
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "spa_booking_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_total = Counter(
    "spa_booking_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

http_requests_in_progress = Gauge(
    "spa_booking_http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
    registry=REGISTRY,
)

service_operation_duration_seconds = Histogram(
    "spa_booking_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "spa_booking_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "spa_booking_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

# Reservation lifecycle
reservation_transitions_total = Counter(
    "spa_booking_reservation_transitions_total",
    "Completed booking transitions",
    ["transition"],  # hold | confirm | cancel | admin_cancel | reschedule
    registry=REGISTRY,
)

slot_conflicts_total = Counter(
    "spa_booking_slot_conflicts_total",
    "Conditional slot claims that matched zero rows",
    ["operation"],
    registry=REGISTRY,
)

compensations_total = Counter(
    "spa_booking_compensations_total",
    "Compensating steps executed by reservation sagas",
    ["operation", "step", "outcome"],  # outcome: success | failed | noop
    registry=REGISTRY,
)

# Expiry sweeper
sweeper_runs_total = Counter(
    "spa_booking_sweeper_runs_total",
    "Expiry sweeper passes",
    ["status"],  # success | error
    registry=REGISTRY,
)

sweeper_deleted_total = Counter(
    "spa_booking_sweeper_deleted_total",
    "Expired holds deleted by the sweeper",
    registry=REGISTRY,
)

sweeper_release_failures_total = Counter(
    "spa_booking_sweeper_release_failures_total",
    "Slot releases that failed after an expired hold was deleted",
    registry=REGISTRY,
)

# Notifications
notifications_total = Counter(
    "spa_booking_notifications_total",
    "Notification emails by type and outcome",
    ["event_type", "status"],  # status: sent | failed | skipped
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _lock: Lock = Lock()

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        """Record HTTP request metrics."""
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        http_request_duration_seconds.labels(**labels).observe(duration)
        http_requests_total.labels(**labels).inc()

    @staticmethod
    def track_http_request_start(method: str, endpoint: str) -> None:
        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()

    @staticmethod
    def track_http_request_end(method: str, endpoint: str) -> None:
        http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'ReservationService')
            operation: Operation name (e.g., 'create_hold')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    # Domain helpers
    @staticmethod
    def inc_transition(transition: str) -> None:
        reservation_transitions_total.labels(transition=transition).inc()

    @staticmethod
    def inc_slot_conflict(operation: str) -> None:
        slot_conflicts_total.labels(operation=operation).inc()

    @staticmethod
    def inc_compensation(operation: str, step: str, outcome: str) -> None:
        """Count a compensating step; outcome is 'success', 'failed' or 'noop'."""
        compensations_total.labels(operation=operation, step=step, outcome=outcome).inc()

    @staticmethod
    def record_sweep(deleted: int, release_failures: int = 0, status: str = "success") -> None:
        sweeper_runs_total.labels(status=status).inc()
        if deleted:
            sweeper_deleted_total.inc(deleted)
        if release_failures:
            sweeper_release_failures_total.inc(release_failures)

    @staticmethod
    def record_notification(event_type: str, status: str) -> None:
        notifications_total.labels(event_type=event_type, status=status).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        with PrometheusMetrics._lock:
            return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
