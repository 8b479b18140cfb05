# backend/app/repositories/coach_repository.py
"""
Coach and slot data access.

Slot reservation is a compare-and-set on ``is_available``: the UPDATE only
matches while the slot is still free, so the affected row count tells the
caller whether it won the slot.
"""

from datetime import datetime
import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ACTIVE_BOOKING_STATUSES
from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from ..models.coach import Coach, CoachSlot
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CoachRepository(BaseRepository[Coach]):
    def __init__(self, db: Session):
        super().__init__(db, Coach)

    def get_active(self, coach_id: str) -> Optional[Coach]:
        return self.find_one_by(id=coach_id, active=True)


class CoachSlotRepository(BaseRepository[CoachSlot]):
    """Repository for coach slots."""

    def __init__(self, db: Session):
        super().__init__(db, CoachSlot)

    def reserve(self, slot_id: str) -> bool:
        """
        Atomically flip an available slot to unavailable.

        Returns:
            True when this call took the slot, False if it was already taken
        """
        try:
            result = self.db.execute(
                update(CoachSlot)
                .where(CoachSlot.id == slot_id, CoachSlot.is_available.is_(True))
                .values(is_available=False)
                .execution_options(synchronize_session=False)
            )
            self._expire_cached(slot_id)
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error reserving slot {slot_id}: {str(e)}")
            raise

    def release(self, slot_id: str) -> None:
        """Make a slot bookable again."""
        try:
            self.db.execute(
                update(CoachSlot)
                .where(CoachSlot.id == slot_id)
                .values(is_available=True)
                .execution_options(synchronize_session=False)
            )
            self._expire_cached(slot_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error releasing slot {slot_id}: {str(e)}")
            raise

    def get_available_for_coach(
        self, coach_id: str, window_start: datetime, window_end: datetime
    ) -> List[CoachSlot]:
        query = (
            self._build_query()
            .filter(
                CoachSlot.coach_id == coach_id,
                CoachSlot.is_available.is_(True),
                CoachSlot.start_at >= window_start,
                CoachSlot.start_at <= window_end,
            )
            .order_by(CoachSlot.start_at.asc())
        )
        return self._execute_query(query)

    def bulk_create_for_coach(
        self, coach_id: str, intervals: Iterable[Tuple[datetime, datetime]]
    ) -> int:
        try:
            slots = [
                CoachSlot(coach_id=coach_id, start_at=start_at, end_at=end_at, is_available=True)
                for start_at, end_at in intervals
            ]
            self.db.add_all(slots)
            self.db.flush()
            return len(slots)
        except SQLAlchemyError as e:
            self.logger.error(f"Error bulk creating slots: {str(e)}")
            raise RepositoryException(f"Failed to create slots: {str(e)}")

    def has_active_booking(self, slot_id: str) -> bool:
        try:
            return (
                self.db.query(Booking.id)
                .filter(
                    Booking.slot_id == slot_id,
                    Booking.status.in_([status.value for status in ACTIVE_BOOKING_STATUSES]),
                )
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking bookings for slot {slot_id}: {str(e)}")
            raise RepositoryException(f"Failed to check slot bookings: {str(e)}")

    def has_any_booking(self, slot_id: str) -> bool:
        try:
            return (
                self.db.query(Booking.id).filter(Booking.slot_id == slot_id).first() is not None
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking booking history for slot {slot_id}: {str(e)}")
            raise RepositoryException(f"Failed to check slot bookings: {str(e)}")

    def retire(self, slot_id: str) -> None:
        """Hide a slot from listings without removing rows that reference it."""
        try:
            self.db.execute(
                update(CoachSlot)
                .where(CoachSlot.id == slot_id)
                .values(is_available=False)
                .execution_options(synchronize_session=False)
            )
            self._expire_cached(slot_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error retiring slot {slot_id}: {str(e)}")
            raise
