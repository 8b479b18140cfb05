# backend/app/services/booking_service.py
"""
Booking Service for the InSkate Platform

Owns the booking-and-package lifecycle:
- Slot reservation: a compare-and-set on the slot's availability flag, backed
  by the ``uq_bookings_active_slot`` partial unique index, so a slot is never
  held by two live bookings even under concurrent requests.
- Package credits: decremented with a conditional update that re-checks
  ``remaining > 0`` and expiry inside the same transaction; restored
  unconditionally on cancellation.
- Status changes by admins, with a best-effort push to the booking owner on
  confirmation.

Every multi-row change (slot + booking, package + booking) commits as one
unit or not at all.
"""

from datetime import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.constants import BOOKING_CONFIRMED_PUSH_BODY, BOOKING_CONFIRMED_PUSH_TITLE
from ..core.enums import TERMINAL_BOOKING_STATUSES, BookingStatus, BookingType, PaymentStatus
from ..core.exceptions import (
    InvalidPackageException,
    InvalidStatusException,
    NotFoundException,
    PackageExhaustedException,
    SlotInPastException,
    SlotUnavailableException,
)
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.booking import Booking, BookingPackage
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.booking_repository import BookingPackageRepository, BookingRepository
from ..repositories.coach_repository import CoachSlotRepository
from ..repositories.factory import RepositoryFactory
from .authorization_service import Action, AuthorizationService, Resource
from .base import BaseService
from .push_notification_service import PushNotificationService

logger = logging.getLogger(__name__)


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Reads are plain repository calls. Writes run inside
    ``self.repository.transaction()`` so that integrity errors surface as
    raw ``IntegrityError`` and can be mapped to domain errors here.
    """

    def __init__(
        self,
        db: Session,
        push_service: Optional[PushNotificationService] = None,
        authorization: Optional[AuthorizationService] = None,
        repository: Optional[BookingRepository] = None,
        slot_repository: Optional[CoachSlotRepository] = None,
        package_repository: Optional[BookingPackageRepository] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.slot_repository = slot_repository or RepositoryFactory.create_coach_slot_repository(db)
        self.package_repository = (
            package_repository or RepositoryFactory.create_booking_package_repository(db)
        )
        self._push_service = push_service
        self.authorization = authorization or AuthorizationService()

    @property
    def push_service(self) -> PushNotificationService:
        if self._push_service is None:
            self._push_service = PushNotificationService(self.db)
        return self._push_service

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        user: User,
        coach_id: str,
        slot_id: str,
        booking_type: BookingType = BookingType.SINGLE,
        package_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Reserve a slot for ``user``.

        Preconditions are checked in this order: slot availability, slot in
        the future, then (for PACKAGE bookings) package ownership and credit.
        The checks are repeated as conditional writes inside the transaction,
        so a request that loses a race still fails cleanly.

        Raises:
            SlotUnavailableException: Slot missing, owned by another coach, or taken
            SlotInPastException: Slot already started
            InvalidPackageException: Package missing or not the user's/coach's
            PackageExhaustedException: Package has no credits left or is expired
        """
        booking_type = BookingType(booking_type)
        self.log_operation(
            "create_booking",
            user_id=user.id,
            coach_id=coach_id,
            slot_id=slot_id,
            booking_type=booking_type.value,
        )
        now = utc_now()

        slot = self.slot_repository.get_by_id(slot_id, load_relationships=False)
        if slot is None or slot.coach_id != coach_id or not slot.is_available:
            raise SlotUnavailableException(slot_id)
        if ensure_utc(slot.start_at) <= now:
            raise SlotInPastException(slot_id)

        package: Optional[BookingPackage] = None
        payment_status = PaymentStatus.PENDING
        if booking_type == BookingType.PACKAGE:
            package = self._validate_package(user, coach_id, package_id, now)
            payment_status = PaymentStatus.PAID

        try:
            with self.repository.transaction():
                if not self.slot_repository.reserve(slot_id):
                    raise SlotUnavailableException(slot_id)
                if package is not None and not self.package_repository.consume_credit(
                    package.id, now
                ):
                    raise PackageExhaustedException(package.id)
                booking = self.repository.create(
                    user_id=user.id,
                    coach_id=coach_id,
                    slot_id=slot_id,
                    package_id=package.id if package is not None else None,
                    type=booking_type.value,
                    status=BookingStatus.PENDING.value,
                    payment_status=payment_status.value,
                    price=0,
                    notes=notes,
                )
        except IntegrityError as exc:
            self.logger.warning(
                "booking_slot_conflict",
                extra={"slot_id": slot_id, "user_id": user.id, "error": str(exc.orig)},
            )
            raise SlotUnavailableException(slot_id) from exc

        self.db.refresh(slot)
        if package is not None:
            self.db.refresh(package)
        prometheus_metrics.inc_booking_event("created", booking_type.value)
        self.logger.info(
            "booking_created",
            extra={"booking_id": booking.id, "slot_id": slot_id, "user_id": user.id},
        )
        return self._reload(booking.id)

    def _validate_package(
        self, user: User, coach_id: str, package_id: Optional[str], now: datetime
    ) -> BookingPackage:
        if not package_id:
            raise InvalidPackageException()
        package = self.package_repository.get_by_id(package_id, load_relationships=False)
        if package is None or package.user_id != user.id or package.coach_id != coach_id:
            raise InvalidPackageException(package_id)
        if package.remaining <= 0 or ensure_utc(package.expires_at) <= now:
            raise PackageExhaustedException(package_id)
        return package

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(self, booking_id: str, actor: User) -> Booking:
        """
        Cancel a booking as its owner or as an admin.

        Package-backed bookings get their credit back regardless of the
        package's expiry, and the slot becomes bookable again. No
        notification is sent.

        Raises:
            NotFoundException: Unknown booking
            ForbiddenException: Actor is neither the owner nor an admin
            InvalidStatusException: Booking already canceled or completed
        """
        booking = self.repository.get_by_id(booking_id, load_relationships=False)
        if booking is None:
            raise NotFoundException("Booking not found")
        self.authorization.require(
            actor,
            Resource.BOOKING,
            Action.CANCEL,
            target=booking,
            message="Cannot cancel this booking",
        )
        if booking.status in TERMINAL_BOOKING_STATUSES:
            raise InvalidStatusException(booking.status, "Cannot cancel this booking")

        with self.repository.transaction():
            # Conditional so that two concurrent cancels restore only one credit
            if not self.repository.mark_canceled(booking.id):
                raise InvalidStatusException(booking.status, "Cannot cancel this booking")
            if booking.is_package_backed:
                self.package_repository.restore_credit(booking.package_id)
            self.slot_repository.release(booking.slot_id)

        prometheus_metrics.inc_booking_event("canceled", booking.type)
        self.log_operation("cancel_booking", booking_id=booking.id, actor_id=actor.id)
        return self._reload(booking.id)

    @BaseService.measure_operation("update_status")
    def update_status(self, booking_id: str, status: BookingStatus) -> Booking:
        """
        Set any status on a booking (admin override, no transition table).

        On CONFIRMED the booking owner is notified after the commit; a failed
        notification never fails the status change.

        Raises:
            NotFoundException: Unknown booking
            SlotUnavailableException: Re-activating a booking whose slot is held by another
        """
        status = BookingStatus(status)
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")

        previous_status = booking.status
        try:
            with self.repository.transaction():
                booking.status = status.value
                self.repository.flush()
        except IntegrityError as exc:
            raise SlotUnavailableException(booking.slot_id) from exc

        self.log_operation(
            "update_booking_status",
            booking_id=booking.id,
            previous_status=previous_status,
            status=status.value,
        )
        booking = self._reload(booking.id)
        if status == BookingStatus.CONFIRMED:
            self._notify_confirmed(booking)
        return booking

    def _notify_confirmed(self, booking: Booking) -> None:
        coach_name = booking.coach.name if booking.coach is not None else ""
        try:
            self.push_service.send_to_user(
                booking.user_id,
                BOOKING_CONFIRMED_PUSH_TITLE,
                BOOKING_CONFIRMED_PUSH_BODY.format(coach_name=coach_name),
                {"type": "booking", "bookingId": booking.id},
            )
        except Exception as exc:
            self.logger.error(
                "booking_confirmation_push_failed",
                extra={"booking_id": booking.id, "error": str(exc)},
                exc_info=True,
            )

    @BaseService.measure_operation("get_user_bookings")
    def get_user_bookings(
        self, user: User, status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        return self.repository.get_user_bookings(
            user.id, BookingStatus(status).value if status else None
        )

    @BaseService.measure_operation("get_usable_packages")
    def get_usable_packages(self, user: User) -> List[BookingPackage]:
        """Packages that can still back a booking (credits left, not expired)."""
        return self.package_repository.get_usable_for_user(user.id, utc_now())

    @BaseService.measure_operation("list_bookings")
    def list_bookings(
        self,
        *,
        status: Optional[BookingStatus] = None,
        coach_id: Optional[str] = None,
        user_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        return self.repository.list_bookings(
            status=BookingStatus(status).value if status else None,
            coach_id=coach_id,
            user_id=user_id,
            page=page,
            limit=limit,
        )

    def _reload(self, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found")
        self.db.refresh(booking)
        return booking
