# backend/app/schemas/booking.py
"""
Booking schemas for the InSkate platform.

A booking always references one coach slot. PACKAGE bookings also reference
the prepaid package that paid for them.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ..core.constants import MAX_NOTES_LENGTH
from ..core.enums import BookingStatus, BookingType
from ._strict_base import StrictModel, StrictRequestModel


class BookingCreate(StrictRequestModel):
    """Reserve a slot, either paid per session or from a package."""

    coach_id: str = Field(..., min_length=1, description="Coach to book")
    slot_id: str = Field(..., min_length=1, description="Slot to reserve")
    type: BookingType = Field(default=BookingType.SINGLE)
    package_id: Optional[str] = Field(default=None, description="Required for PACKAGE bookings")
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)


class BookingStatusUpdate(StrictRequestModel):
    status: BookingStatus


class CoachSummary(StrictModel):
    id: str
    name: str
    avatar_url: Optional[str] = None


class SlotSummary(StrictModel):
    id: str
    start_at: datetime
    end_at: datetime


class UserSummary(StrictModel):
    id: str
    name: Optional[str] = None
    phone: str


class BookingResponse(StrictModel):
    """Booking as returned to its owner and to admins."""

    id: str
    user_id: str
    coach_id: str
    slot_id: str
    package_id: Optional[str] = None
    type: BookingType
    status: BookingStatus
    payment_status: str
    price: int
    currency: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    coach: Optional[CoachSummary] = None
    slot: Optional[SlotSummary] = None


class AdminBookingResponse(BookingResponse):
    user: Optional[UserSummary] = None


class BookingPackageResponse(StrictModel):
    id: str
    coach_id: str
    total: int
    remaining: int
    expires_at: datetime
    coach: Optional[CoachSummary] = None
