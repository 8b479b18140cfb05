# backend/app/repositories/push_notification_repository.py
"""
Push notification records.

``claim_for_sending`` is the once-only gate of delivery: it sets ``sent_at``
only while it is still NULL, so concurrent or replayed jobs for the same
notification cannot both deliver.
"""

from datetime import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.push_notification import PushNotification
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PushNotificationRepository(BaseRepository[PushNotification]):
    def __init__(self, db: Session):
        super().__init__(db, PushNotification)

    def claim_for_sending(self, notification_id: str, now: datetime) -> bool:
        try:
            result = self.db.execute(
                update(PushNotification)
                .where(PushNotification.id == notification_id, PushNotification.sent_at.is_(None))
                .values(sent_at=now)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error claiming push notification {notification_id}: {str(e)}")
            raise

    def record_result(self, notification_id: str, success_count: int, failure_count: int) -> None:
        self.db.execute(
            update(PushNotification)
            .where(PushNotification.id == notification_id)
            .values(success_count=success_count, failure_count=failure_count)
            .execution_options(synchronize_session=False)
        )

    def get_due_ids(self, now: datetime, limit: Optional[int] = None) -> List[str]:
        query = (
            self.db.query(PushNotification.id)
            .filter(
                PushNotification.sent_at.is_(None),
                PushNotification.scheduled_at.isnot(None),
                PushNotification.scheduled_at <= now,
            )
            .order_by(PushNotification.scheduled_at.asc())
        )
        if limit:
            query = query.limit(limit)
        return [row[0] for row in query.all()]

    def list_notifications(
        self, *, pending: bool = False, page: int = 1, limit: int = 20
    ) -> Tuple[List[PushNotification], int]:
        query = self._build_query()
        if pending:
            query = query.filter(
                PushNotification.sent_at.is_(None), PushNotification.scheduled_at.isnot(None)
            )
        query = query.order_by(PushNotification.created_at.desc())
        return self._paginate(query, page, limit)

    def delete_unsent(self, notification_id: str) -> bool:
        """Delete a notification only while it has not been claimed for sending."""
        try:
            deleted = (
                self.db.query(PushNotification)
                .filter(PushNotification.id == notification_id, PushNotification.sent_at.is_(None))
                .delete(synchronize_session=False)
            )
            return deleted == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting push notification {notification_id}: {str(e)}")
            raise
