# backend/tests/services/test_slot_service.py
"""SlotService tests: bulk creation, deletion guards and public listings."""

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from app.core.enums import BookingStatus
from app.core.exceptions import NotFoundException, SlotBookedException, ValidationException
from app.core.timezone_utils import utc_now
from app.models.coach import Coach, CoachSlot
from app.services.booking_service import BookingService
from app.services.slot_service import SlotService


@pytest.fixture
def slot_service(db: Session) -> SlotService:
    return SlotService(db)


class TestCreateSlots:
    def test_bulk_create(self, db, slot_service, test_coach):
        start = utc_now() + timedelta(days=1)
        intervals = [
            (start + timedelta(hours=offset), start + timedelta(hours=offset + 1))
            for offset in range(3)
        ]

        created = slot_service.create_slots(test_coach.id, intervals)

        assert created == 3
        assert db.query(CoachSlot).filter(CoachSlot.coach_id == test_coach.id).count() == 3

    def test_unknown_coach(self, slot_service):
        start = utc_now() + timedelta(days=1)
        with pytest.raises(NotFoundException):
            slot_service.create_slots(
                "01HZZZZZZZZZZZZZZZZZZZZZZZ", [(start, start + timedelta(hours=1))]
            )

    def test_interval_must_end_after_start(self, db, slot_service, test_coach):
        start = utc_now() + timedelta(days=1)

        with pytest.raises(ValidationException) as exc_info:
            slot_service.create_slots(
                test_coach.id,
                [(start, start + timedelta(hours=1)), (start, start)],
            )

        assert exc_info.value.code == "VALIDATION_ERROR"
        assert exc_info.value.details == {"index": 1}
        assert db.query(CoachSlot).count() == 0


class TestDeleteSlot:
    def test_delete_free_slot(self, db, slot_service, future_slot):
        slot_service.delete_slot(future_slot.id)

        db.expire_all()
        assert db.get(CoachSlot, future_slot.id) is None

    def test_slot_with_live_booking_is_protected(
        self, db, slot_service, test_user, test_coach, future_slot
    ):
        BookingService(db).create_booking(test_user, test_coach.id, future_slot.id)

        with pytest.raises(SlotBookedException) as exc_info:
            slot_service.delete_slot(future_slot.id)

        assert exc_info.value.code == "SLOT_BOOKED"
        assert exc_info.value.status_code == 409

    def test_slot_with_history_is_retired(
        self, db, slot_service, test_user, test_coach, future_slot
    ):
        booking_service = BookingService(db)
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)
        booking_service.cancel_booking(booking.id, test_user)

        slot_service.delete_slot(future_slot.id)

        db.expire_all()
        slot = db.get(CoachSlot, future_slot.id)
        assert slot is not None
        assert slot.is_available is False
        assert slot_service.get_available_slots(test_coach.id) == []

    def test_completed_booking_keeps_history(
        self, db, slot_service, test_user, test_coach, future_slot
    ):
        booking_service = BookingService(db)
        booking = booking_service.create_booking(test_user, test_coach.id, future_slot.id)
        booking_service.update_status(booking.id, BookingStatus.COMPLETED)

        slot_service.delete_slot(future_slot.id)

        db.expire_all()
        assert db.get(CoachSlot, future_slot.id) is not None

    def test_unknown_slot(self, slot_service):
        with pytest.raises(NotFoundException):
            slot_service.delete_slot("01HZZZZZZZZZZZZZZZZZZZZZZZ")


class TestAvailableSlots:
    def test_lists_future_available_slots_in_order(self, slot_service, test_coach, make_slot):
        later = make_slot(hours_from_now=72)
        sooner = make_slot(hours_from_now=24)
        make_slot(hours_from_now=48, available=False)
        make_slot(hours_from_now=-3)

        slots = slot_service.get_available_slots(test_coach.id)

        assert [slot.id for slot in slots] == [sooner.id, later.id]

    def test_default_window_is_thirty_days(self, slot_service, test_coach, make_slot):
        inside = make_slot(hours_from_now=24 * 29)
        make_slot(hours_from_now=24 * 31)

        assert [slot.id for slot in slot_service.get_available_slots(test_coach.id)] == [inside.id]

    def test_explicit_window(self, slot_service, test_coach, make_slot):
        make_slot(hours_from_now=24)
        wanted = make_slot(hours_from_now=24 * 40)

        slots = slot_service.get_available_slots(
            test_coach.id,
            utc_now() + timedelta(days=39),
            utc_now() + timedelta(days=41),
        )

        assert [slot.id for slot in slots] == [wanted.id]

    def test_window_never_starts_in_the_past(self, slot_service, test_coach, make_slot):
        make_slot(hours_from_now=-5)
        upcoming = make_slot(hours_from_now=5)

        slots = slot_service.get_available_slots(
            test_coach.id, utc_now() - timedelta(days=1), utc_now() + timedelta(days=1)
        )

        assert [slot.id for slot in slots] == [upcoming.id]

    def test_inactive_coach_is_not_found(self, db, slot_service):
        coach = Coach(name="Retired", active=False)
        db.add(coach)
        db.commit()

        with pytest.raises(NotFoundException):
            slot_service.get_available_slots(coach.id)
