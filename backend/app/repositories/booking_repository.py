# backend/app/repositories/booking_repository.py
"""
Booking Repository for the InSkate Platform

Implements data access for bookings and prepaid packages:
- Booking creation exposing integrity errors for conflict handling
- User and admin booking listings
- Conditional package credit decrement and unconditional restoration
"""

from datetime import datetime
import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.enums import TERMINAL_BOOKING_STATUSES, BookingStatus
from ..core.exceptions import RepositoryException
from ..core.timezone_utils import utc_now
from ..models.booking import Booking, BookingPackage
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def mark_canceled(self, booking_id: str) -> bool:
        """
        Cancel a booking unless it is already canceled or completed.

        Returns:
            True when this call performed the transition
        """
        try:
            result = self.db.execute(
                update(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.status.notin_(
                        [status.value for status in TERMINAL_BOOKING_STATUSES]
                    ),
                )
                .values(status=BookingStatus.CANCELED.value, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            self._expire_cached(booking_id)
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error canceling booking {booking_id}: {str(e)}")
            raise

    def get_user_bookings(self, user_id: str, status: Optional[str] = None) -> List[Booking]:
        query = self._apply_eager_loading(self._build_query()).filter(Booking.user_id == user_id)
        if status:
            query = query.filter(Booking.status == status)
        return self._execute_query(query.order_by(Booking.created_at.desc()))

    def list_bookings(
        self,
        *,
        status: Optional[str] = None,
        coach_id: Optional[str] = None,
        user_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        query = self._build_query()
        if status:
            query = query.filter(Booking.status == status)
        if coach_id:
            query = query.filter(Booking.coach_id == coach_id)
        if user_id:
            query = query.filter(Booking.user_id == user_id)
        query = self._apply_eager_loading(query).order_by(Booking.created_at.desc())
        return self._paginate(query, page, limit)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.coach),
            joinedload(Booking.slot),
            joinedload(Booking.user),
        )


class BookingPackageRepository(BaseRepository[BookingPackage]):
    """Repository for prepaid session packages."""

    def __init__(self, db: Session):
        super().__init__(db, BookingPackage)

    def consume_credit(self, package_id: str, now: datetime) -> bool:
        """
        Take one credit if the package still has credits and has not expired.

        Returns:
            True when a credit was taken
        """
        try:
            result = self.db.execute(
                update(BookingPackage)
                .where(
                    BookingPackage.id == package_id,
                    BookingPackage.remaining > 0,
                    BookingPackage.expires_at > now,
                )
                .values(remaining=BookingPackage.remaining - 1)
                .execution_options(synchronize_session=False)
            )
            self._expire_cached(package_id)
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error consuming credit of package {package_id}: {str(e)}")
            raise

    def restore_credit(self, package_id: str) -> None:
        """Give one credit back. Expiry is intentionally not checked."""
        try:
            self.db.execute(
                update(BookingPackage)
                .where(BookingPackage.id == package_id)
                .values(remaining=BookingPackage.remaining + 1)
                .execution_options(synchronize_session=False)
            )
            self._expire_cached(package_id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error restoring credit of package {package_id}: {str(e)}")
            raise

    def get_usable_for_user(self, user_id: str, now: datetime) -> List[BookingPackage]:
        query = (
            self._build_query()
            .options(joinedload(BookingPackage.coach))
            .filter(
                BookingPackage.user_id == user_id,
                BookingPackage.remaining > 0,
                BookingPackage.expires_at > now,
            )
            .order_by(BookingPackage.expires_at.asc())
        )
        return self._execute_query(query)
