# backend/app/routes/v1/webhooks_stripe.py
"""
Stripe Webhook Endpoint

Verifies the ``stripe-signature`` header, then routes the event to
SubscriptionService. Handler failures answer 500 so Stripe retries the
delivery; every handler is safe to replay.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
import stripe

from ...api.dependencies import get_stripe_service_dep, get_subscription_service
from ...monitoring.prometheus_metrics import prometheus_metrics
from ...schemas.webhook_responses import WebhookAckResponse
from ...services.stripe_service import StripeService
from ...services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stripe-webhooks"])


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


@router.post("/stripe", response_model=WebhookAckResponse)
async def handle_stripe_webhook(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe_service_dep),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> WebhookAckResponse:
    """
    Handle Stripe subscription lifecycle events.

    Processes:
    - checkout.session.completed
    - customer.subscription.created / customer.subscription.updated
    - customer.subscription.deleted
    - invoice.payment_failed

    Other event types are acknowledged and ignored.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        logger.warning("Missing Stripe signature header")
        raise _error(
            status.HTTP_400_BAD_REQUEST, "MISSING_SIGNATURE", "Missing stripe-signature header"
        )

    try:
        event = stripe_service.construct_event(payload, signature)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning(f"Invalid Stripe webhook signature: {str(e)}")
        prometheus_metrics.inc_webhook_event("unknown", "invalid_signature")
        raise _error(status.HTTP_400_BAD_REQUEST, "INVALID_SIGNATURE", "Invalid webhook signature")

    event_type = event.get("type", "")
    try:
        await asyncio.to_thread(subscription_service.handle_webhook_event, event)
    except Exception as e:
        logger.error(
            "stripe_webhook_handler_failed",
            extra={"event_id": event.get("id"), "event_type": event_type, "error": str(e)},
            exc_info=True,
        )
        prometheus_metrics.inc_webhook_event(event_type or "unknown", "error")
        raise _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "HANDLER_ERROR", "Failed to process webhook"
        )

    return WebhookAckResponse(received=True)
