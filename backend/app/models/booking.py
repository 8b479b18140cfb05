# backend/app/models/booking.py
"""
Booking and package models for the InSkate platform.

A booking reserves one coach slot for one user. At most one non-canceled
booking may reference a slot; the partial unique index
``uq_bookings_active_slot`` enforces that at the database level so that two
concurrent requests can never both commit a booking for the same slot.

A package is a prepaid bundle of sessions with one coach. Its ``remaining``
count and ``expires_at`` jointly gate whether it can back a new booking.
"""

from datetime import datetime, timezone
import logging
from typing import Any

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import ulid

from ..core.enums import BookingStatus, BookingType, PaymentStatus
from ..database import Base

logger = logging.getLogger(__name__)


class BookingPackage(Base):
    """Prepaid session credits with one coach."""

    __tablename__ = "booking_packages"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    coach_id = Column(String(26), ForeignKey("coaches.id"), nullable=False)
    total = Column(Integer, nullable=False)
    remaining = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    coach = relationship("Coach")

    __table_args__ = (
        CheckConstraint("remaining >= 0", name="ck_booking_packages_remaining_non_negative"),
        CheckConstraint("total > 0", name="ck_booking_packages_total_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<BookingPackage {self.id}: {self.remaining}/{self.total}, expires={self.expires_at}>"
        )


class Booking(Base):
    """
    A user's reservation of a coach slot.

    Status flow as used by the product: PENDING -> CONFIRMED/CANCELED ->
    COMPLETED/CANCELED/NO_SHOW. Admins may set any status.
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    coach_id = Column(String(26), ForeignKey("coaches.id"), nullable=False, index=True)
    slot_id = Column(String(26), ForeignKey("coach_slots.id"), nullable=False)
    package_id = Column(String(26), ForeignKey("booking_packages.id"), nullable=True)

    type = Column(String(10), nullable=False, default=BookingType.SINGLE)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING)

    # Minor currency units
    price = Column(Integer, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="RUB")
    notes = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User")
    coach = relationship("Coach")
    slot = relationship("CoachSlot")
    package = relationship("BookingPackage")

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELED', 'NO_SHOW')",
            name="ck_bookings_status",
        ),
        CheckConstraint("type IN ('SINGLE', 'PACKAGE')", name="ck_bookings_type"),
        CheckConstraint(
            "payment_status IN ('PENDING', 'PAID', 'FAILED', 'REFUNDED')",
            name="ck_bookings_payment_status",
        ),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        # One live booking per slot
        Index(
            "uq_bookings_active_slot",
            "slot_id",
            unique=True,
            postgresql_where=text("status <> 'CANCELED'"),
            sqlite_where=text("status <> 'CANCELED'"),
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING
        logger.info(f"Creating booking for user {self.user_id} with coach {self.coach_id}")

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: user={self.user_id}, coach={self.coach_id}, "
            f"slot={self.slot_id}, status={self.status}>"
        )

    @property
    def is_package_backed(self) -> bool:
        return self.type == BookingType.PACKAGE and self.package_id is not None
