# backend/app/services/slot_service.py
"""
Slot management for coaches: admin creation/deletion and public listings.
"""

from datetime import datetime, timedelta
import logging
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.constants import DEFAULT_SLOT_WINDOW_DAYS
from ..core.exceptions import NotFoundException, SlotBookedException, ValidationException
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.coach import CoachSlot
from ..repositories.coach_repository import CoachRepository, CoachSlotRepository
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


class SlotService(BaseService):
    def __init__(
        self,
        db: Session,
        coach_repository: Optional[CoachRepository] = None,
        slot_repository: Optional[CoachSlotRepository] = None,
    ):
        super().__init__(db)
        self.coach_repository = coach_repository or RepositoryFactory.create_coach_repository(db)
        self.slot_repository = slot_repository or RepositoryFactory.create_coach_slot_repository(db)

    @BaseService.measure_operation("create_slots")
    def create_slots(
        self, coach_id: str, intervals: Sequence[Tuple[datetime, datetime]]
    ) -> int:
        """
        Create one or many slots for a coach.

        Raises:
            NotFoundException: Unknown coach
            ValidationException: An interval does not end after it starts
        """
        if self.coach_repository.get_by_id(coach_id, load_relationships=False) is None:
            raise NotFoundException("Coach not found")

        normalized = []
        for index, (start_at, end_at) in enumerate(intervals):
            start_at, end_at = ensure_utc(start_at), ensure_utc(end_at)
            if end_at <= start_at:
                raise ValidationException(
                    "Slot end must be after its start", details={"index": index}
                )
            normalized.append((start_at, end_at))

        with self.transaction():
            created = self.slot_repository.bulk_create_for_coach(coach_id, normalized)
        self.log_operation("create_slots", coach_id=coach_id, count=created)
        return created

    @BaseService.measure_operation("delete_slot")
    def delete_slot(self, slot_id: str) -> None:
        """
        Delete a slot that no live booking references.

        Raises:
            NotFoundException: Unknown slot
            SlotBookedException: A PENDING or CONFIRMED booking holds the slot
        """
        if self.slot_repository.get_by_id(slot_id, load_relationships=False) is None:
            raise NotFoundException("Slot not found")
        if self.slot_repository.has_active_booking(slot_id):
            raise SlotBookedException(slot_id)
        # Canceled and completed bookings keep their slot reference
        if self.slot_repository.has_any_booking(slot_id):
            with self.transaction():
                self.slot_repository.retire(slot_id)
            self.log_operation("retire_slot", slot_id=slot_id)
            return
        with self.transaction():
            self.slot_repository.delete(slot_id)
        self.log_operation("delete_slot", slot_id=slot_id)

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self,
        coach_id: str,
        window_start: Optional[datetime] = None,
        window_end: Optional[datetime] = None,
    ) -> List[CoachSlot]:
        """Bookable slots of an active coach, by default for the next 30 days."""
        if self.coach_repository.get_active(coach_id) is None:
            raise NotFoundException("Coach not found")
        now = utc_now()
        start = max(ensure_utc(window_start) or now, now)
        end = ensure_utc(window_end) or start + timedelta(days=DEFAULT_SLOT_WINDOW_DAYS)
        return self.slot_repository.get_available_for_coach(coach_id, start, end)
