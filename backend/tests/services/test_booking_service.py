# backend/tests/services/test_booking_service.py
"""
BookingService tests against a real SQLite database.

Covers slot reservation, package credit accounting, cancellation and admin
status changes including the confirmation push.
"""

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from app.core.enums import BookingStatus, BookingType, PaymentStatus
from app.core.exceptions import (
    ForbiddenException,
    InvalidPackageException,
    InvalidStatusException,
    NotFoundException,
    PackageExhaustedException,
    SlotInPastException,
    SlotUnavailableException,
)
from app.core.timezone_utils import utc_now
from app.models.booking import Booking, BookingPackage
from app.models.coach import Coach, CoachSlot
from app.services.booking_service import BookingService
from app.services.push_notification_service import PushNotificationService


@pytest.fixture
def booking_service(db: Session, push_sender) -> BookingService:
    return BookingService(db, push_service=PushNotificationService(db, push_sender))


def _slot(db: Session, slot_id: str) -> CoachSlot:
    db.expire_all()
    return db.get(CoachSlot, slot_id)


def _package(db: Session, package_id: str) -> BookingPackage:
    db.expire_all()
    return db.get(BookingPackage, package_id)


class TestCreateBooking:
    def test_single_booking_reserves_slot(
        self, db, booking_service, test_user, test_coach, future_slot
    ):
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)

        assert booking.status == BookingStatus.PENDING
        assert booking.payment_status == PaymentStatus.PENDING
        assert booking.type == BookingType.SINGLE
        assert booking.package_id is None
        assert booking.price == 0
        assert booking.currency == "RUB"
        assert _slot(db, future_slot.id).is_available is False

    def test_package_booking_consumes_credit(
        self, db, booking_service, test_user, test_coach, future_slot, make_package
    ):
        package = make_package(test_user, remaining=3)

        booking = booking_service.create_booking(
            test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
        )

        assert booking.payment_status == PaymentStatus.PAID
        assert booking.package_id == package.id
        assert _package(db, package.id).remaining == 2

    def test_notes_are_stored(self, booking_service, test_user, test_coach, future_slot):
        booking = booking_service.create_booking(
            test_user, test_coach.id, future_slot.id, notes="First time on ice"
        )
        assert booking.notes == "First time on ice"

    def test_taken_slot_is_rejected(
        self, db, booking_service, test_user, other_user, test_coach, future_slot
    ):
        booking_service.create_booking(test_user, test_coach.id, future_slot.id)

        with pytest.raises(SlotUnavailableException) as exc_info:
            booking_service.create_booking(other_user, test_coach.id, future_slot.id)

        assert exc_info.value.code == "SLOT_NOT_AVAILABLE"
        assert db.query(Booking).filter(Booking.slot_id == future_slot.id).count() == 1

    def test_unknown_slot_is_unavailable(self, booking_service, test_user, test_coach):
        with pytest.raises(SlotUnavailableException):
            booking_service.create_booking(test_user, test_coach.id, "01HZZZZZZZZZZZZZZZZZZZZZZZ")

    def test_slot_of_another_coach_is_unavailable(
        self, db, booking_service, test_user, future_slot
    ):
        other_coach = Coach(name="Tatiana Tarasova", active=True)
        db.add(other_coach)
        db.commit()

        with pytest.raises(SlotUnavailableException):
            booking_service.create_booking(test_user, other_coach.id, future_slot.id)

    def test_past_slot_is_rejected(self, db, booking_service, test_user, test_coach, make_slot):
        slot = make_slot(hours_from_now=-2)

        with pytest.raises(SlotInPastException) as exc_info:
            booking_service.create_booking(test_user, test_coach.id, slot.id)

        assert exc_info.value.code == "SLOT_IN_PAST"
        assert _slot(db, slot.id).is_available is True

    def test_package_booking_without_package_id(
        self, booking_service, test_user, test_coach, future_slot
    ):
        with pytest.raises(InvalidPackageException) as exc_info:
            booking_service.create_booking(
                test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, None
            )
        assert exc_info.value.code == "INVALID_PACKAGE"

    def test_package_of_another_user_is_invalid(
        self, db, booking_service, test_user, other_user, test_coach, future_slot, make_package
    ):
        package = make_package(other_user)

        with pytest.raises(InvalidPackageException):
            booking_service.create_booking(
                test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
            )
        assert _package(db, package.id).remaining == 5
        assert _slot(db, future_slot.id).is_available is True

    def test_package_for_another_coach_is_invalid(
        self, db, booking_service, test_user, test_coach, future_slot, make_package
    ):
        other_coach = Coach(name="Alexei Mishin", active=True)
        db.add(other_coach)
        db.commit()
        package = make_package(test_user, coach=other_coach)

        with pytest.raises(InvalidPackageException):
            booking_service.create_booking(
                test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
            )

    def test_exhausted_package_is_rejected(
        self, db, booking_service, test_user, test_coach, future_slot, make_package
    ):
        package = make_package(test_user, remaining=0)

        with pytest.raises(PackageExhaustedException) as exc_info:
            booking_service.create_booking(
                test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
            )

        assert exc_info.value.code == "PACKAGE_EXHAUSTED"
        assert _slot(db, future_slot.id).is_available is True
        assert db.query(Booking).count() == 0

    def test_expired_package_is_rejected(
        self, db, booking_service, test_user, test_coach, future_slot, make_package
    ):
        package = make_package(test_user, remaining=4, expires_in_days=-1)

        with pytest.raises(PackageExhaustedException):
            booking_service.create_booking(
                test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
            )
        assert _package(db, package.id).remaining == 4

    def test_last_credit_can_be_used_once(
        self, db, booking_service, test_user, test_coach, make_slot, make_package
    ):
        package = make_package(test_user, remaining=1)
        first, second = make_slot(hours_from_now=24), make_slot(hours_from_now=26)

        booking_service.create_booking(
            test_user, test_coach.id, first.id, BookingType.PACKAGE, package.id
        )
        with pytest.raises(PackageExhaustedException):
            booking_service.create_booking(
                test_user, test_coach.id, second.id, BookingType.PACKAGE, package.id
            )

        assert _package(db, package.id).remaining == 0
        assert _slot(db, second.id).is_available is True


class TestCancelBooking:
    def test_owner_cancels_and_slot_reopens(
        self, db, booking_service, test_user, test_coach, future_slot
    ):
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)

        canceled = booking_service.cancel_booking(booking.id, test_user)

        assert canceled.status == BookingStatus.CANCELED
        assert _slot(db, future_slot.id).is_available is True

    def test_cancel_restores_package_credit(
        self, db, booking_service, test_user, test_coach, future_slot, make_package
    ):
        package = make_package(test_user, remaining=2)
        booking = booking_service.create_booking(
            test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
        )
        assert _package(db, package.id).remaining == 1

        booking_service.cancel_booking(booking.id, test_user)

        assert _package(db, package.id).remaining == 2

    def test_cancel_restores_credit_of_expired_package(
        self, db, booking_service, test_user, test_coach, future_slot, make_package
    ):
        package = make_package(test_user, remaining=1)
        booking = booking_service.create_booking(
            test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
        )
        stored = _package(db, package.id)
        stored.expires_at = utc_now() - timedelta(days=1)
        db.commit()

        booking_service.cancel_booking(booking.id, test_user)

        assert _package(db, package.id).remaining == 1

    def test_admin_can_cancel_any_booking(
        self, booking_service, test_user, admin_user, test_coach, future_slot
    ):
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)

        canceled = booking_service.cancel_booking(booking.id, admin_user)

        assert canceled.status == BookingStatus.CANCELED

    def test_other_user_cannot_cancel(
        self, db, booking_service, test_user, other_user, test_coach, future_slot
    ):
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)

        with pytest.raises(ForbiddenException):
            booking_service.cancel_booking(booking.id, other_user)

        db.expire_all()
        assert db.get(Booking, booking.id).status == BookingStatus.PENDING
        assert _slot(db, future_slot.id).is_available is False

    def test_unknown_booking(self, booking_service, test_user):
        with pytest.raises(NotFoundException):
            booking_service.cancel_booking("01HZZZZZZZZZZZZZZZZZZZZZZZ", test_user)

    @pytest.mark.parametrize("terminal", [BookingStatus.CANCELED, BookingStatus.COMPLETED])
    def test_terminal_bookings_cannot_be_canceled(
        self, db, booking_service, test_user, test_coach, future_slot, make_package, terminal
    ):
        package = make_package(test_user, remaining=2)
        booking = booking_service.create_booking(
            test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
        )
        booking_service.update_status(booking.id, terminal)
        remaining_before = _package(db, package.id).remaining

        with pytest.raises(InvalidStatusException) as exc_info:
            booking_service.cancel_booking(booking.id, test_user)

        assert exc_info.value.code == "INVALID_STATUS"
        assert _package(db, package.id).remaining == remaining_before

    def test_no_show_booking_can_be_canceled(
        self, booking_service, test_user, test_coach, future_slot
    ):
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)
        booking_service.update_status(booking.id, BookingStatus.NO_SHOW)

        canceled = booking_service.cancel_booking(booking.id, test_user)
        assert canceled.status == BookingStatus.CANCELED

    def test_canceled_slot_can_be_booked_again(
        self, booking_service, test_user, other_user, test_coach, future_slot
    ):
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)
        booking_service.cancel_booking(booking.id, test_user)

        rebooked = booking_service.create_booking(other_user, test_coach.id, future_slot.id)

        assert rebooked.status == BookingStatus.PENDING
        assert rebooked.user_id == other_user.id

    def test_restored_last_credit_can_be_spent_again(
        self, db, booking_service, test_user, test_coach, future_slot, make_package
    ):
        package = make_package(test_user, remaining=1)
        booking = booking_service.create_booking(
            test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
        )
        booking_service.cancel_booking(booking.id, test_user)

        rebooked = booking_service.create_booking(
            test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
        )

        assert rebooked.package_id == package.id
        assert rebooked.payment_status == PaymentStatus.PAID
        assert _package(db, package.id).remaining == 0
        assert _slot(db, future_slot.id).is_available is False


class TestUpdateStatus:
    def test_confirm_notifies_owner(
        self, booking_service, push_sender, add_device_token, test_user, test_coach, future_slot
    ):
        add_device_token(test_user, "token-anna")
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)

        updated = booking_service.update_status(booking.id, BookingStatus.CONFIRMED)

        assert updated.status == BookingStatus.CONFIRMED
        assert len(push_sender.calls) == 1
        call = push_sender.calls[0]
        assert call["tokens"] == ["token-anna"]
        assert test_coach.name in call["body"]
        assert call["data"] == {"type": "booking", "bookingId": booking.id}

    def test_other_statuses_send_nothing(
        self, booking_service, push_sender, add_device_token, test_user, test_coach, future_slot
    ):
        add_device_token(test_user, "token-anna")
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)

        booking_service.update_status(booking.id, BookingStatus.COMPLETED)

        assert push_sender.calls == []

    def test_push_failure_does_not_fail_status_change(
        self, db, booking_service, push_sender, add_device_token, test_user, test_coach, future_slot
    ):
        add_device_token(test_user, "token-anna")
        push_sender.raise_error = RuntimeError("fcm down")
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)

        updated = booking_service.update_status(booking.id, BookingStatus.CONFIRMED)

        assert updated.status == BookingStatus.CONFIRMED
        db.expire_all()
        assert db.get(Booking, booking.id).status == BookingStatus.CONFIRMED

    def test_status_change_has_no_slot_or_package_side_effects(
        self, db, booking_service, test_user, test_coach, future_slot, make_package
    ):
        package = make_package(test_user, remaining=2)
        booking = booking_service.create_booking(
            test_user, test_coach.id, future_slot.id, BookingType.PACKAGE, package.id
        )

        booking_service.update_status(booking.id, BookingStatus.CANCELED)

        assert _package(db, package.id).remaining == 1
        assert _slot(db, future_slot.id).is_available is False

    def test_unknown_booking(self, booking_service):
        with pytest.raises(NotFoundException):
            booking_service.update_status("01HZZZZZZZZZZZZZZZZZZZZZZZ", BookingStatus.CONFIRMED)


class TestReads:
    def test_user_bookings_filtered_by_status(
        self, booking_service, test_user, other_user, test_coach, make_slot
    ):
        first = booking_service.create_booking(test_user, test_coach.id, make_slot(24).id)
        second = booking_service.create_booking(test_user, test_coach.id, make_slot(30).id)
        booking_service.create_booking(other_user, test_coach.id, make_slot(36).id)
        booking_service.update_status(second.id, BookingStatus.CONFIRMED)

        mine = booking_service.get_user_bookings(test_user)
        confirmed = booking_service.get_user_bookings(test_user, BookingStatus.CONFIRMED)

        assert {booking.id for booking in mine} == {first.id, second.id}
        assert [booking.id for booking in confirmed] == [second.id]

    def test_usable_packages_exclude_empty_and_expired(
        self, booking_service, test_user, make_package
    ):
        usable = make_package(test_user, remaining=2)
        make_package(test_user, remaining=0)
        make_package(test_user, remaining=3, expires_in_days=-1)

        packages = booking_service.get_usable_packages(test_user)

        assert [package.id for package in packages] == [usable.id]

    def test_list_bookings_paginates_and_filters(
        self, booking_service, test_user, other_user, test_coach, make_slot
    ):
        for hours in (24, 26, 28):
            booking_service.create_booking(test_user, test_coach.id, make_slot(hours).id)
        booking_service.create_booking(other_user, test_coach.id, make_slot(30).id)

        page, total = booking_service.list_bookings(page=1, limit=2)
        assert total == 4
        assert len(page) == 2

        only_mine, mine_total = booking_service.list_bookings(user_id=test_user.id)
        assert mine_total == 3
        assert all(booking.user_id == test_user.id for booking in only_mine)
