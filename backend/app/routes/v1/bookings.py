# backend/app/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    GET /me - Current user's bookings, optional status filter
    GET /packages - Current user's usable packages
    POST / - Book a slot (single session or package credit)
    POST /{booking_id}/cancel - Cancel a booking (owner or admin)
    GET / - Admin listing with filters and pagination
    PATCH /{booking_id}/status - Admin status change
"""

import asyncio
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_booking_service, get_current_user
from ...core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ...core.enums import BookingStatus
from ...core.exceptions import DomainException
from ...dependencies.permissions import require_permission
from ...models.user import User
from ...schemas.base_responses import ApiResponse, PaginatedResponse, create_paginated_response
from ...schemas.booking import (
    AdminBookingResponse,
    BookingCreate,
    BookingPackageResponse,
    BookingResponse,
    BookingStatusUpdate,
)
from ...services.authorization_service import Action, Resource
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

require_booking_admin = require_permission(Resource.BOOKING, Action.MANAGE)


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get("/me", response_model=ApiResponse[List[BookingResponse]])
async def get_my_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[List[BookingResponse]]:
    """List the current user's bookings, newest first."""
    try:
        bookings = await asyncio.to_thread(
            booking_service.get_user_bookings, current_user, booking_status
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[List[BookingResponse]](
        data=[BookingResponse.model_validate(booking) for booking in bookings]
    )


@router.get("/packages", response_model=ApiResponse[List[BookingPackageResponse]])
async def get_my_packages(
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[List[BookingPackageResponse]]:
    """Packages with credits left that have not expired."""
    try:
        packages = await asyncio.to_thread(booking_service.get_usable_packages, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[List[BookingPackageResponse]](
        data=[BookingPackageResponse.model_validate(package) for package in packages]
    )


@router.post(
    "",
    response_model=ApiResponse[BookingResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingResponse]:
    """
    Book a slot.

    SINGLE bookings start with payment PENDING; PACKAGE bookings consume one
    package credit and are PAID.
    """
    try:
        booking = await asyncio.to_thread(
            booking_service.create_booking,
            current_user,
            booking_data.coach_id,
            booking_data.slot_id,
            booking_data.type,
            booking_data.package_id,
            booking_data.notes,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[BookingResponse](data=BookingResponse.model_validate(booking))


@router.get("", response_model=PaginatedResponse[AdminBookingResponse])
async def list_bookings(
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    coach_id: Optional[str] = Query(None, alias="coachId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    _admin: User = Depends(require_booking_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaginatedResponse[AdminBookingResponse]:
    """Admin listing of all bookings."""
    try:
        bookings, total = await asyncio.to_thread(
            booking_service.list_bookings,
            status=booking_status,
            coach_id=coach_id,
            user_id=user_id,
            page=page,
            limit=limit,
        )
    except DomainException as e:
        handle_domain_exception(e)
    items = [AdminBookingResponse.model_validate(booking) for booking in bookings]
    return PaginatedResponse[AdminBookingResponse].model_validate(
        create_paginated_response(items, total, page, limit)
    )


# ============================================================================
# SECTION 2: Booking-specific routes
# ============================================================================


@router.post("/{booking_id}/cancel", response_model=ApiResponse[BookingResponse])
async def cancel_booking(
    booking_id: str,
    current_user: User = Depends(get_current_user),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[BookingResponse]:
    """Cancel a booking; package credits are returned and the slot reopens."""
    try:
        booking = await asyncio.to_thread(booking_service.cancel_booking, booking_id, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[BookingResponse](data=BookingResponse.model_validate(booking))


@router.patch("/{booking_id}/status", response_model=ApiResponse[AdminBookingResponse])
async def update_booking_status(
    booking_id: str,
    payload: BookingStatusUpdate = Body(...),
    _admin: User = Depends(require_booking_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> ApiResponse[AdminBookingResponse]:
    """Set a booking's status; CONFIRMED also notifies the user."""
    try:
        booking = await asyncio.to_thread(
            booking_service.update_status, booking_id, payload.status
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[AdminBookingResponse](data=AdminBookingResponse.model_validate(booking))
