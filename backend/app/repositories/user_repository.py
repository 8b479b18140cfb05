# backend/app/repositories/user_repository.py
"""
User Repository for the InSkate Platform

Handles user lookups and the device tokens used to address
push notifications, including audience segment resolution.
"""

import logging
from typing import List, Sequence

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ENTITLED_SUBSCRIPTION_STATUSES, PushSegment
from ..core.exceptions import RepositoryException
from ..models.subscription import Subscription
from ..models.user import DeviceToken, User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_ENTITLED = [status.value for status in ENTITLED_SUBSCRIPTION_STATUSES]


class UserRepository(BaseRepository[User]):
    """Repository for User data access."""

    def __init__(self, db: Session):
        super().__init__(db, User)


class DeviceTokenRepository(BaseRepository[DeviceToken]):
    """Repository for FCM device tokens."""

    def __init__(self, db: Session):
        super().__init__(db, DeviceToken)

    def get_tokens_for_user(self, user_id: str) -> List[str]:
        try:
            rows = self.db.query(DeviceToken.token).filter(DeviceToken.user_id == user_id).all()
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading device tokens for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load device tokens: {str(e)}")

    def get_tokens_for_segment(self, segment: str) -> List[str]:
        """
        Resolve the device tokens of an audience segment.

        ``subscribers`` are users whose subscription is TRIAL or ACTIVE;
        ``non_subscribers`` are everyone else, including users with no
        subscription row at all.
        """
        query = self.db.query(DeviceToken.token)
        if segment == PushSegment.SUBSCRIBERS:
            query = query.join(Subscription, Subscription.user_id == DeviceToken.user_id).filter(
                Subscription.status.in_(_ENTITLED)
            )
        elif segment == PushSegment.NON_SUBSCRIBERS:
            query = query.outerjoin(
                Subscription, Subscription.user_id == DeviceToken.user_id
            ).filter(or_(Subscription.id.is_(None), ~Subscription.status.in_(_ENTITLED)))
        try:
            return [row[0] for row in query.all()]
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading device tokens for segment {segment}: {str(e)}")
            raise RepositoryException(f"Failed to load device tokens: {str(e)}")

    def upsert(self, user_id: str, token: str, platform: str) -> DeviceToken:
        """Register a token; an existing token moves to ``user_id``."""
        existing = self.find_one_by(token=token)
        if existing is not None:
            existing.user_id = user_id
            existing.platform = platform
            self.flush()
            return existing
        return self.create(user_id=user_id, token=token, platform=platform)

    def delete_tokens(self, tokens: Sequence[str]) -> int:
        if not tokens:
            return 0
        try:
            return (
                self.db.query(DeviceToken)
                .filter(DeviceToken.token.in_(list(tokens)))
                .delete(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error deleting device tokens: {str(e)}")
            raise RepositoryException(f"Failed to delete device tokens: {str(e)}")
