# backend/app/repositories/subscription_repository.py
"""
Subscription and plan data access.

Subscriptions are keyed by user (one-to-one) for local writes and by the
Stripe subscription id for webhook-driven writes.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Query, Session, joinedload

from ..models.subscription import Plan, Subscription
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PlanRepository(BaseRepository[Plan]):
    def __init__(self, db: Session):
        super().__init__(db, Plan)


class SubscriptionRepository(BaseRepository[Subscription]):
    """Repository for subscriptions."""

    def __init__(self, db: Session):
        super().__init__(db, Subscription)

    def get_by_user_id(self, user_id: str) -> Optional[Subscription]:
        return self._apply_eager_loading(self._build_query()).filter(
            Subscription.user_id == user_id
        ).first()

    def get_by_stripe_subscription_id(self, stripe_subscription_id: str) -> Optional[Subscription]:
        return self.find_one_by(stripe_subscription_id=stripe_subscription_id)

    def upsert_for_user(self, user_id: str, **fields: object) -> Subscription:
        """Create the user's subscription or overwrite the given fields of the existing one."""
        subscription = self.find_one_by(user_id=user_id)
        if subscription is None:
            return self.create(user_id=user_id, **fields)
        for key, value in fields.items():
            setattr(subscription, key, value)
        self.flush()
        return subscription

    def list_subscriptions(
        self, *, status: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> Tuple[List[Subscription], int]:
        query = self._build_query()
        if status:
            query = query.filter(Subscription.status == status)
        query = self._apply_eager_loading(query).order_by(Subscription.created_at.desc())
        return self._paginate(query, page, limit)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Subscription.plan), joinedload(Subscription.user))
