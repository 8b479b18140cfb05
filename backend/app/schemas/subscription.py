# backend/app/schemas/subscription.py
"""Subscription, checkout and grant schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ..core.constants import DEFAULT_GRANT_DAYS
from ..core.enums import SubscriptionStatus
from ._strict_base import StrictModel, StrictRequestModel
from .booking import UserSummary


class PlanSummary(StrictModel):
    id: str
    name: str
    price: int
    currency: str
    interval: str
    trial_days: int


class SubscriptionResponse(StrictModel):
    id: str
    user_id: str
    plan_id: str
    status: SubscriptionStatus
    trial_end_at: Optional[datetime] = None
    current_period_end_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    created_at: datetime
    plan: Optional[PlanSummary] = None


class AdminSubscriptionResponse(SubscriptionResponse):
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    user: Optional[UserSummary] = None


class CheckoutRequest(StrictRequestModel):
    plan_id: str = Field(..., min_length=1)


class CheckoutResponse(StrictModel):
    checkout_url: str
    session_id: str


class PortalResponse(StrictModel):
    portal_url: str


class GrantRequest(StrictRequestModel):
    """Admin grant of a subscription without payment."""

    user_id: str = Field(..., min_length=1)
    plan_id: str = Field(..., min_length=1)
    duration_days: int = Field(default=DEFAULT_GRANT_DAYS, ge=1, le=3650)
