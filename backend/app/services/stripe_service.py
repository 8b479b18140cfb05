# backend/app/services/stripe_service.py
"""
Stripe gateway for the InSkate platform.

A thin wrapper over the ``stripe`` SDK: webhook signature verification,
subscription checkout and billing portal sessions, and subscription
cancellation. It holds no database state; subscription bookkeeping lives in
``SubscriptionService``. One instance is built per process and injected.
"""

import json
import logging
import threading
from typing import Any, Dict, Optional

import stripe

from ..core.config import secret_or_plain, settings

logger = logging.getLogger(__name__)


class StripeService:
    """Gateway to the Stripe API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
    ) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self.api_key = api_key if api_key is not None else secret_or_plain(
            settings.stripe_secret_key
        )
        self.webhook_secret = webhook_secret if webhook_secret is not None else secret_or_plain(
            settings.stripe_webhook_secret
        )
        self.configured = bool(self.api_key)
        if self.configured:
            stripe.api_key = self.api_key
            self.logger.info("Stripe service configured")
        else:
            self.logger.warning("Stripe secret key not configured; Stripe calls will fail")

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """
        Verify a webhook payload against its ``stripe-signature`` header.

        Returns:
            The event as a plain dict

        Raises:
            stripe.SignatureVerificationError: Signature does not match
            ValueError: Payload is not valid JSON
        """
        stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        return json.loads(payload)

    def create_checkout_session(
        self,
        *,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        customer_id: Optional[str] = None,
        trial_days: int = 0,
    ) -> Any:
        """
        Create a subscription-mode Checkout Session.

        An existing Stripe customer is reused; otherwise Stripe creates one.

        Raises:
            stripe.StripeError: Stripe rejected the request
        """
        params: Dict[str, Any] = {
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if customer_id:
            params["customer"] = customer_id
        else:
            params["customer_creation"] = "always"
        if trial_days > 0:
            params["subscription_data"] = {"trial_period_days": trial_days}

        session = stripe.checkout.Session.create(**params)
        self.logger.info(
            "stripe_checkout_session_created",
            extra={"session_id": session.id, "metadata": metadata},
        )
        return session

    def create_portal_session(self, customer_id: str, return_url: str) -> Any:
        """
        Create a billing portal session for ``customer_id``.

        Raises:
            stripe.StripeError: Stripe rejected the request
        """
        return stripe.billing_portal.Session.create(customer=customer_id, return_url=return_url)

    def cancel_subscription(self, stripe_subscription_id: str) -> Any:
        """
        Cancel a subscription immediately on Stripe.

        Raises:
            stripe.StripeError: Stripe rejected the request
        """
        subscription = stripe.Subscription.cancel(stripe_subscription_id)
        self.logger.info(
            "stripe_subscription_canceled",
            extra={"stripe_subscription_id": stripe_subscription_id},
        )
        return subscription


_stripe_service: Optional[StripeService] = None
_stripe_service_lock = threading.Lock()


def get_stripe_service() -> StripeService:
    """Process-wide gateway, built on first use."""
    global _stripe_service
    if _stripe_service is not None:
        return _stripe_service
    with _stripe_service_lock:
        if _stripe_service is None:
            _stripe_service = StripeService()
        return _stripe_service


def set_stripe_service(service: Optional[StripeService]) -> None:
    """Override the process-wide gateway (tests, startup wiring)."""
    global _stripe_service
    _stripe_service = service
