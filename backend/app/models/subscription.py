# backend/app/models/subscription.py
"""
Plan and subscription models.

A subscription is one-to-one with a user and is never hard-deleted; its
status carries the lifecycle. The user's role mirrors the status and is
written in the same transaction as every status change.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import SubscriptionStatus
from ..database import Base


class Plan(Base):
    __tablename__ = "plans"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(100), nullable=False)
    # Minor currency units
    price = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="RUB")
    interval = Column(String(10), nullable=False, default="month")
    trial_days = Column(Integer, nullable=False, default=0)
    stripe_product_id = Column(String(255), nullable=True)
    stripe_price_id = Column(String(255), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (CheckConstraint("trial_days >= 0", name="ck_plans_trial_days"),)

    def __repr__(self) -> str:
        return f"<Plan {self.id}: {self.name}>"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, unique=True)
    plan_id = Column(String(26), ForeignKey("plans.id"), nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE, index=True)

    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True, unique=True)

    trial_end_at = Column(DateTime(timezone=True), nullable=True)
    current_period_end_at = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="subscription")
    plan = relationship("Plan")

    __table_args__ = (
        CheckConstraint(
            "status IN ('TRIAL', 'ACTIVE', 'PAST_DUE', 'CANCELED', 'EXPIRED')",
            name="ck_subscriptions_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Subscription {self.id}: user={self.user_id}, status={self.status}>"
