# backend/spa_booking/core/exceptions.py
"""
Domain-specific exceptions for the Spa Booking platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when request input is malformed (rejected before any store access)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is missing or owned by someone else."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when the current state of a resource forbids the operation."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails because the store failed."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific reservation exceptions


class SlotUnavailableException(ConflictException):
    """Raised when a slot was claimed by someone else (or never was free)."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "Time slot is no longer available",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class InvalidBookingStateException(ConflictException):
    """Raised when a booking is not in the state an operation requires."""

    def __init__(self, current_status: str, action: str):
        super().__init__(
            message=f"Cannot {action} booking with status: {current_status}",
            code="INVALID_BOOKING_STATE",
            details={"status": current_status, "action": action},
        )


class ReservationExpiredException(ConflictException):
    """Raised when a pending hold is past its expiry."""

    def __init__(self, booking_id: str):
        super().__init__(
            message="Reservation has expired. Please create a new booking.",
            code="RESERVATION_EXPIRED",
            details={"booking_id": booking_id},
        )


class CancellationTooLateException(ConflictException):
    """Raised when a confirmed booking is cancelled inside the notice window."""

    def __init__(self, required_hours: int, hours_until_start: float):
        super().__init__(
            message=(
                f"Bookings must be cancelled at least {required_hours} hours before they start"
            ),
            code="CANCELLATION_TOO_LATE",
            details={
                "required_hours": required_hours,
                "hours_until_start": round(hours_until_start, 2),
            },
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
