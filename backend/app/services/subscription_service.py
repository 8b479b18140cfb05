# backend/app/services/subscription_service.py
"""
Subscription Service for the InSkate Platform

Keeps the local subscription row and the user's role in step with Stripe:
- Webhook handlers (checkout completed, subscription updated/deleted,
  invoice payment failed). Unknown references are logged and dropped so that
  Stripe does not retry events we can never apply.
- Local cancellation, which cancels on Stripe first but never fails because
  of Stripe.
- Manual grants by admins.

The role is SUBSCRIBER while the status is TRIAL or ACTIVE and USER
otherwise. ADMIN and COACH roles are never rewritten. Each subscription
write and its role write commit together.
"""

from datetime import datetime, timedelta
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
import stripe

from ..core.config import settings
from ..core.constants import DEFAULT_GRANT_DAYS
from ..core.enums import (
    ENTITLED_SUBSCRIPTION_STATUSES,
    PROTECTED_ROLES,
    SubscriptionStatus,
    UserRole,
)
from ..core.exceptions import (
    AlreadySubscribedException,
    BusinessRuleException,
    NotFoundException,
    UpstreamServiceException,
)
from ..core.timezone_utils import from_unix, utc_now
from ..models.subscription import Plan, Subscription
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .stripe_service import StripeService, get_stripe_service

logger = logging.getLogger(__name__)

STRIPE_STATUS_MAP = {
    "trialing": SubscriptionStatus.TRIAL,
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "unpaid": SubscriptionStatus.CANCELED,
}


def map_stripe_status(stripe_status: Optional[str]) -> SubscriptionStatus:
    """Map a Stripe subscription status onto ours; anything unrecognised is EXPIRED."""
    return STRIPE_STATUS_MAP.get(stripe_status or "", SubscriptionStatus.EXPIRED)


def _period_end(stripe_subscription: Dict[str, Any]) -> Optional[datetime]:
    # Newer API versions moved the period onto subscription items
    period_end = stripe_subscription.get("current_period_end")
    if period_end is None:
        items = (stripe_subscription.get("items") or {}).get("data") or []
        if items:
            period_end = items[0].get("current_period_end")
    return from_unix(period_end)


def _invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    subscription_id = invoice.get("subscription")
    if subscription_id is None:
        details = (invoice.get("parent") or {}).get("subscription_details") or {}
        subscription_id = details.get("subscription")
    if isinstance(subscription_id, dict):
        subscription_id = subscription_id.get("id")
    return subscription_id


class SubscriptionService(BaseService):
    """Service layer for subscriptions and Stripe webhook events."""

    def __init__(self, db: Session, stripe_service: Optional[StripeService] = None):
        super().__init__(db)
        self._stripe_service = stripe_service
        self.repository = RepositoryFactory.create_subscription_repository(db)
        self.plan_repository = RepositoryFactory.create_plan_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    @property
    def stripe_service(self) -> StripeService:
        if self._stripe_service is None:
            self._stripe_service = get_stripe_service()
        return self._stripe_service

    # Webhook handlers

    @BaseService.measure_operation("handle_checkout_completed")
    def handle_checkout_completed(
        self, session: Dict[str, Any], event_created: Optional[int] = None
    ) -> Optional[Subscription]:
        """
        Activate the subscription bought through a Checkout Session.

        Timestamps derive from the event's ``created`` instant so a replayed
        event writes exactly the same row.

        Returns:
            The subscription, or None when the session cannot be applied
        """
        metadata = session.get("metadata") or {}
        user_id = metadata.get("userId")
        plan_id = metadata.get("planId")
        if not user_id or not plan_id:
            self.logger.warning(
                "stripe_checkout_missing_metadata", extra={"session_id": session.get("id")}
            )
            prometheus_metrics.inc_webhook_event("checkout.session.completed", "dropped")
            return None

        plan = self.plan_repository.get_by_id(plan_id, load_relationships=False)
        if plan is None:
            self.logger.warning(
                "stripe_checkout_unknown_plan",
                extra={"session_id": session.get("id"), "plan_id": plan_id},
            )
            prometheus_metrics.inc_webhook_event("checkout.session.completed", "dropped")
            return None
        user = self.user_repository.get_by_id(user_id, load_relationships=False)
        if user is None:
            self.logger.warning(
                "stripe_checkout_unknown_user",
                extra={"session_id": session.get("id"), "user_id": user_id},
            )
            prometheus_metrics.inc_webhook_event("checkout.session.completed", "dropped")
            return None

        anchor = from_unix(event_created) or utc_now()
        trial_end_at = anchor + timedelta(days=plan.trial_days) if plan.trial_days > 0 else None
        status = SubscriptionStatus.TRIAL if trial_end_at else SubscriptionStatus.ACTIVE

        with self.transaction():
            subscription = self.repository.upsert_for_user(
                user.id,
                plan_id=plan.id,
                status=status.value,
                stripe_customer_id=session.get("customer"),
                stripe_subscription_id=session.get("subscription"),
                trial_end_at=trial_end_at,
                current_period_end_at=anchor + timedelta(days=settings.checkout_period_days),
                canceled_at=None,
            )
            self._sync_role(user, status)

        prometheus_metrics.inc_webhook_event("checkout.session.completed", "applied")
        self.log_operation(
            "checkout_completed", user_id=user.id, plan_id=plan.id, status=status.value
        )
        return subscription

    @BaseService.measure_operation("handle_subscription_updated")
    def handle_subscription_updated(
        self,
        stripe_subscription: Dict[str, Any],
        event_type: str = "customer.subscription.updated",
    ) -> Optional[Subscription]:
        """Mirror a Stripe subscription's status and period onto the local row."""
        subscription = self._find_by_stripe_id(stripe_subscription.get("id"), event_type)
        if subscription is None:
            return None

        status = map_stripe_status(stripe_subscription.get("status"))
        with self.transaction():
            subscription.status = status.value
            subscription.current_period_end_at = _period_end(stripe_subscription)
            subscription.trial_end_at = from_unix(stripe_subscription.get("trial_end"))
            self._sync_role(subscription.user, status)

        prometheus_metrics.inc_webhook_event(event_type, "applied")
        self.log_operation(
            "subscription_updated", subscription_id=subscription.id, status=status.value
        )
        return subscription

    @BaseService.measure_operation("handle_subscription_deleted")
    def handle_subscription_deleted(
        self, stripe_subscription: Dict[str, Any]
    ) -> Optional[Subscription]:
        subscription = self._find_by_stripe_id(
            stripe_subscription.get("id"), "customer.subscription.deleted"
        )
        if subscription is None:
            return None

        with self.transaction():
            self._mark_canceled(subscription)

        prometheus_metrics.inc_webhook_event("customer.subscription.deleted", "applied")
        self.log_operation("subscription_deleted", subscription_id=subscription.id)
        return subscription

    @BaseService.measure_operation("handle_payment_failed")
    def handle_payment_failed(self, invoice: Dict[str, Any]) -> Optional[Subscription]:
        """Flag the subscription PAST_DUE. The role is left as it is."""
        subscription = self._find_by_stripe_id(
            _invoice_subscription_id(invoice), "invoice.payment_failed"
        )
        if subscription is None:
            return None

        with self.transaction():
            subscription.status = SubscriptionStatus.PAST_DUE.value

        prometheus_metrics.inc_webhook_event("invoice.payment_failed", "applied")
        self.log_operation("subscription_payment_failed", subscription_id=subscription.id)
        return subscription

    def handle_webhook_event(self, event: Dict[str, Any]) -> bool:
        """
        Route a verified Stripe event to its handler.

        Returns:
            True when the event type is one we act on
        """
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}
        self.logger.info(
            "stripe_webhook_received", extra={"event_id": event.get("id"), "event_type": event_type}
        )

        if event_type == "checkout.session.completed":
            self.handle_checkout_completed(obj, event.get("created"))
        elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
            self.handle_subscription_updated(obj, event_type)
        elif event_type == "customer.subscription.deleted":
            self.handle_subscription_deleted(obj)
        elif event_type == "invoice.payment_failed":
            self.handle_payment_failed(obj)
        else:
            self.logger.info("stripe_webhook_ignored", extra={"event_type": event_type})
            prometheus_metrics.inc_webhook_event(event_type or "unknown", "ignored")
            return False
        return True

    def _find_by_stripe_id(
        self, stripe_subscription_id: Optional[str], event_type: str
    ) -> Optional[Subscription]:
        subscription = None
        if stripe_subscription_id:
            subscription = self.repository.get_by_stripe_subscription_id(stripe_subscription_id)
        if subscription is None:
            self.logger.warning(
                "stripe_subscription_not_found",
                extra={"stripe_subscription_id": stripe_subscription_id, "event_type": event_type},
            )
            prometheus_metrics.inc_webhook_event(event_type, "dropped")
        return subscription

    # Local operations

    @BaseService.measure_operation("cancel_subscription")
    def cancel(self, user: User) -> Subscription:
        """
        Cancel the user's subscription.

        Stripe is asked to cancel first; a Stripe failure is logged and the
        local cancellation still happens.

        Raises:
            NotFoundException: NO_SUBSCRIPTION
        """
        subscription = self.repository.get_by_user_id(user.id)
        if subscription is None:
            raise NotFoundException("No subscription found", code="NO_SUBSCRIPTION")

        if subscription.stripe_subscription_id:
            try:
                self.stripe_service.cancel_subscription(subscription.stripe_subscription_id)
            except stripe.StripeError as e:
                self.logger.error(
                    "stripe_cancel_failed",
                    extra={"subscription_id": subscription.id, "error": str(e)},
                )

        with self.transaction():
            self._mark_canceled(subscription)

        self.log_operation("cancel_subscription", user_id=user.id, subscription_id=subscription.id)
        return subscription

    @BaseService.measure_operation("grant_subscription")
    def grant(
        self, user_id: str, plan_id: str, duration_days: int = DEFAULT_GRANT_DAYS
    ) -> Subscription:
        """
        Give a user an ACTIVE subscription without payment.

        Raises:
            NotFoundException: USER_NOT_FOUND or PLAN_NOT_FOUND
        """
        user = self.user_repository.get_by_id(user_id, load_relationships=False)
        if user is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        plan = self.plan_repository.get_by_id(plan_id, load_relationships=False)
        if plan is None:
            raise NotFoundException("Plan not found", code="PLAN_NOT_FOUND")

        with self.transaction():
            subscription = self.repository.upsert_for_user(
                user.id,
                plan_id=plan.id,
                status=SubscriptionStatus.ACTIVE.value,
                current_period_end_at=utc_now() + timedelta(days=duration_days),
                canceled_at=None,
            )
            self._sync_role(user, SubscriptionStatus.ACTIVE)

        self.log_operation(
            "grant_subscription", user_id=user.id, plan_id=plan.id, duration_days=duration_days
        )
        return subscription

    @BaseService.measure_operation("get_subscription_for_user")
    def get_for_user(self, user: User) -> Optional[Subscription]:
        return self.repository.get_by_user_id(user.id)

    @BaseService.measure_operation("list_subscriptions")
    def list_subscriptions(
        self,
        *,
        status: Optional[SubscriptionStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Subscription], int]:
        return self.repository.list_subscriptions(
            status=SubscriptionStatus(status).value if status else None, page=page, limit=limit
        )

    @BaseService.measure_operation("create_checkout")
    def create_checkout(self, user: User, plan_id: str) -> Dict[str, str]:
        """
        Start a Stripe Checkout for ``plan_id``.

        Returns:
            ``{"checkout_url": ..., "session_id": ...}``

        Raises:
            NotFoundException: PLAN_NOT_FOUND (missing or inactive plan)
            BusinessRuleException: STRIPE_NOT_CONFIGURED (plan has no Stripe price)
            AlreadySubscribedException: Current subscription is TRIAL or ACTIVE
            UpstreamServiceException: CHECKOUT_FAILED
        """
        plan: Optional[Plan] = self.plan_repository.get_by_id(plan_id, load_relationships=False)
        if plan is None or not plan.active:
            raise NotFoundException("Plan not found or inactive", code="PLAN_NOT_FOUND")
        if not plan.stripe_price_id:
            raise BusinessRuleException(
                "Stripe is not configured for this plan", code="STRIPE_NOT_CONFIGURED"
            )

        existing = self.repository.get_by_user_id(user.id)
        if existing is not None and existing.status in ENTITLED_SUBSCRIPTION_STATUSES:
            raise AlreadySubscribedException(existing.status)

        try:
            session = self.stripe_service.create_checkout_session(
                price_id=plan.stripe_price_id,
                success_url=f"{settings.frontend_url}/subscription/success"
                "?session_id={CHECKOUT_SESSION_ID}",
                cancel_url=f"{settings.frontend_url}/subscription/canceled",
                metadata={"userId": user.id, "planId": plan.id},
                customer_id=existing.stripe_customer_id if existing is not None else None,
                trial_days=plan.trial_days,
            )
        except stripe.StripeError as e:
            self.logger.error(
                "stripe_checkout_failed", extra={"user_id": user.id, "error": str(e)}
            )
            raise UpstreamServiceException(
                "Failed to create checkout session", code="CHECKOUT_FAILED"
            ) from e

        return {"checkout_url": session.url, "session_id": session.id}

    @BaseService.measure_operation("create_portal")
    def create_portal(self, user: User) -> Dict[str, str]:
        """
        Open the Stripe billing portal for the user's Stripe customer.

        Raises:
            BusinessRuleException: NO_SUBSCRIPTION (no Stripe customer on file)
            UpstreamServiceException: PORTAL_FAILED
        """
        subscription = self.repository.get_by_user_id(user.id)
        if subscription is None or not subscription.stripe_customer_id:
            raise BusinessRuleException("No subscription found", code="NO_SUBSCRIPTION")

        try:
            session = self.stripe_service.create_portal_session(
                subscription.stripe_customer_id, f"{settings.frontend_url}/profile"
            )
        except stripe.StripeError as e:
            self.logger.error("stripe_portal_failed", extra={"user_id": user.id, "error": str(e)})
            raise UpstreamServiceException(
                "Failed to create portal session", code="PORTAL_FAILED"
            ) from e

        return {"portal_url": session.url}

    # Helpers

    def _mark_canceled(self, subscription: Subscription) -> None:
        subscription.status = SubscriptionStatus.CANCELED.value
        subscription.canceled_at = utc_now()
        self._sync_role(subscription.user, SubscriptionStatus.CANCELED)

    def _sync_role(self, user: Optional[User], status: SubscriptionStatus) -> None:
        """Derive the user's role from the subscription status, sparing admins and coaches."""
        if user is None or user.role in PROTECTED_ROLES:
            return
        role = UserRole.SUBSCRIBER if status in ENTITLED_SUBSCRIPTION_STATUSES else UserRole.USER
        if user.role != role.value:
            user.role = role.value
            self.db.flush()
