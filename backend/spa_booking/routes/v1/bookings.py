# backend/spa_booking/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to ReservationService, BookingQueryService and
ExpirySweepService.

Endpoints:
    GET /available-slots - Slots long enough for a service
    POST /reserve - Place a pending hold on a slot
    GET /my-bookings - The caller's bookings, grouped
    GET /admin/all - Filtered list with counts and revenue (admin)
    POST /cleanup - Run one expiry sweep now (admin)
    POST /{booking_id}/confirm - Confirm (and pay for) a pending hold
    POST /{booking_id}/cancel - Cancel; admins get the override variant
    POST /{booking_id}/reschedule - Move to another slot (admin)
"""

import asyncio
from datetime import date
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.params import Path

from ...api.dependencies import (
    get_booking_query_service,
    get_current_actor,
    get_expiry_sweep_service,
    get_reservation_service,
    require_admin,
)
from ...core.constants import DEFAULT_QUERY_LIMIT, MAX_QUERY_LIMIT
from ...core.exceptions import DomainException
from ...core.timezone_utils import get_local_today
from ...models.booking import Booking
from ...principal import Actor
from ...schemas.booking import (
    AdminBookingsResponse,
    BookingResponse,
    CleanupResponse,
    GroupedBookingsResponse,
    HoldResponse,
    MyBookingsResponse,
    RescheduleRequest,
    ReserveRequest,
)
from ...schemas.slot import TimeSlotResponse
from ...services.booking_query_service import BookingQueryService
from ...services.expiry_sweeper import ExpirySweepService
from ...services.reservation_service import ReservationService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get("/available-slots", response_model=List[TimeSlotResponse])
async def get_available_slots(
    service_id: str = Query(..., description="Service the slot must fit"),
    start_date: Optional[date] = Query(None, description="First day (defaults to today)"),
    end_date: Optional[date] = Query(None, description="Last day (inclusive)"),
    provider_id: Optional[str] = Query(None, description="Restrict to one therapist"),
    query_service: BookingQueryService = Depends(get_booking_query_service),
) -> List[TimeSlotResponse]:
    """Available slots whose window fits the service duration."""
    try:
        slots = await asyncio.to_thread(
            query_service.get_available_slots,
            service_id=service_id,
            start_date=start_date or get_local_today(),
            end_date=end_date,
            provider_id=provider_id,
        )
        return [TimeSlotResponse.model_validate(slot) for slot in slots]
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/reserve", response_model=HoldResponse, status_code=status.HTTP_201_CREATED)
async def reserve_slot(
    payload: ReserveRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> HoldResponse:
    """
    Hold a slot for the caller.

    The hold lasts RESERVATION_TIMEOUT_MINUTES; confirm it before it expires.
    """
    try:
        hold = await asyncio.to_thread(
            reservation_service.create_hold,
            customer_id=actor.id,
            provider_id=payload.provider_id,
            slot_id=payload.slot_id,
            service_id=payload.service_id,
            notes=payload.notes,
        )
        return HoldResponse(
            booking=BookingResponse.model_validate(hold.booking),
            expires_at=hold.expires_at,
            expires_in_seconds=hold.expires_in_seconds,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/my-bookings", response_model=MyBookingsResponse)
async def get_my_bookings(
    actor: Actor = Depends(get_current_actor),
    query_service: BookingQueryService = Depends(get_booking_query_service),
) -> MyBookingsResponse:
    """The caller's bookings: everything plus upcoming / pending / past / cancelled."""
    try:
        grouped = await asyncio.to_thread(query_service.get_customer_bookings, actor.id)
    except DomainException as e:
        handle_domain_exception(e)

    def dump(bookings: List[Booking]) -> List[BookingResponse]:
        return [BookingResponse.model_validate(b) for b in bookings]

    return MyBookingsResponse(
        all=dump(grouped.all),
        grouped=GroupedBookingsResponse(
            upcoming=dump(grouped.upcoming),
            pending=dump(grouped.pending),
            past=dump(grouped.past),
            cancelled=dump(grouped.cancelled),
        ),
    )


@router.get("/admin/all", response_model=AdminBookingsResponse)
async def get_all_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    provider_id: Optional[str] = Query(None),
    customer_id: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    limit: int = Query(DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT),
    offset: int = Query(0, ge=0),
    _: Actor = Depends(require_admin),
    query_service: BookingQueryService = Depends(get_booking_query_service),
) -> AdminBookingsResponse:
    """All bookings with per-status counts and revenue (admin only)."""
    try:
        overview = await asyncio.to_thread(
            query_service.get_admin_overview,
            status=status_filter,
            provider_id=provider_id,
            customer_id=customer_id,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )
        return AdminBookingsResponse(
            bookings=[BookingResponse.model_validate(b) for b in overview.bookings],
            counts=overview.counts,
            total_revenue=overview.total_revenue,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_expired(
    admin: Actor = Depends(require_admin),
    sweep_service: ExpirySweepService = Depends(get_expiry_sweep_service),
) -> CleanupResponse:
    """Run one expiry sweep immediately (admin only)."""
    try:
        deleted = await asyncio.to_thread(sweep_service.manual_sweep)
    except DomainException as e:
        handle_domain_exception(e)
    logger.info(f"Manual sweep by {admin.id} deleted {deleted} expired holds")
    return CleanupResponse(deleted=deleted, message=f"Cleaned up {deleted} expired reservations")


# ============================================================================
# SECTION 2: Booking routes (path parameter)
# ============================================================================


@router.post(
    "/{booking_id}/confirm",
    response_model=BookingResponse,
    responses={404: {"description": "Booking not found"}, 409: {"description": "Expired or not pending"}},
)
async def confirm_booking(
    booking_id: str = Path(..., description="Booking ULID", examples=["01HF4G12ABCDEF3456789XYZAB"]),
    actor: Actor = Depends(get_current_actor),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> BookingResponse:
    """Confirm a pending hold; payment is recorded as paid."""
    try:
        booking = await asyncio.to_thread(reservation_service.confirm, booking_id, actor.id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    responses={404: {"description": "Booking not found"}, 409: {"description": "Cannot cancel"}},
)
async def cancel_booking(
    booking_id: str = Path(..., description="Booking ULID", examples=["01HF4G12ABCDEF3456789XYZAB"]),
    actor: Actor = Depends(get_current_actor),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> BookingResponse:
    """Cancel a booking. Administrators may cancel any booking without notice."""
    try:
        if actor.is_admin:
            booking = await asyncio.to_thread(reservation_service.admin_cancel, booking_id, actor.id)
        else:
            booking = await asyncio.to_thread(reservation_service.cancel, booking_id, actor.id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/reschedule",
    response_model=BookingResponse,
    responses={404: {"description": "Booking not found"}, 409: {"description": "Slot unavailable"}},
)
async def reschedule_booking(
    booking_id: str = Path(..., description="Booking ULID", examples=["01HF4G12ABCDEF3456789XYZAB"]),
    payload: RescheduleRequest = Body(...),
    admin: Actor = Depends(require_admin),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> BookingResponse:
    """Move a pending or confirmed booking to another slot of the same therapist."""
    try:
        booking = await asyncio.to_thread(
            reservation_service.reschedule, booking_id, payload.new_slot_id, admin.id
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)
