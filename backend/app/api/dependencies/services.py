# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. The push sender and
the Stripe gateway are process-wide and shared by every request.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.authorization_service import AuthorizationService
from ...services.booking_service import BookingService
from ...services.push_notification_service import PushNotificationService
from ...services.push_sender import PushSender, get_push_sender
from ...services.slot_service import SlotService
from ...services.stripe_service import StripeService, get_stripe_service
from ...services.subscription_service import SubscriptionService
from .database import get_db

logger = logging.getLogger(__name__)

_authorization = AuthorizationService()


def get_authorization_service() -> AuthorizationService:
    return _authorization


def get_push_sender_dep() -> PushSender:
    """Get the process-wide push transport."""
    return get_push_sender()


def get_stripe_service_dep() -> StripeService:
    """Get the process-wide Stripe gateway."""
    return get_stripe_service()


def get_push_notification_service(
    db: Session = Depends(get_db), sender: PushSender = Depends(get_push_sender_dep)
) -> PushNotificationService:
    return PushNotificationService(db, sender)


def get_booking_service(
    db: Session = Depends(get_db),
    push_service: PushNotificationService = Depends(get_push_notification_service),
    authorization: AuthorizationService = Depends(get_authorization_service),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        push_service: Push delivery for booking confirmations
        authorization: Policy used for ownership checks

    Returns:
        BookingService instance
    """
    return BookingService(db, push_service=push_service, authorization=authorization)


def get_slot_service(db: Session = Depends(get_db)) -> SlotService:
    return SlotService(db)


def get_subscription_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service_dep),
) -> SubscriptionService:
    """Get subscription service instance wired to the shared Stripe gateway."""
    return SubscriptionService(db, stripe_service)
