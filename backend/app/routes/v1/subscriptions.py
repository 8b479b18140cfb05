# backend/app/routes/v1/subscriptions.py
"""
Subscription routes - API v1

Endpoints:
    GET /me - Current user's subscription (null when none)
    POST /checkout - Start a Stripe Checkout
    POST /portal - Open the Stripe billing portal
    POST /cancel - Cancel the current user's subscription
    GET / - Admin listing
    POST /grant - Admin grant without payment
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_current_user, get_subscription_service
from ...core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ...core.enums import SubscriptionStatus
from ...core.exceptions import DomainException
from ...dependencies.permissions import require_permission
from ...models.user import User
from ...schemas.base_responses import ApiResponse, PaginatedResponse, create_paginated_response
from ...schemas.subscription import (
    AdminSubscriptionResponse,
    CheckoutRequest,
    CheckoutResponse,
    GrantRequest,
    PortalResponse,
    SubscriptionResponse,
)
from ...services.authorization_service import Action, Resource
from ...services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscriptions-v1"])

require_subscription_list = require_permission(Resource.SUBSCRIPTION, Action.LIST)
require_subscription_grant = require_permission(Resource.SUBSCRIPTION, Action.GRANT)


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/me", response_model=ApiResponse[Optional[SubscriptionResponse]])
async def get_my_subscription(
    current_user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[Optional[SubscriptionResponse]]:
    try:
        subscription = await asyncio.to_thread(subscription_service.get_for_user, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    data = SubscriptionResponse.model_validate(subscription) if subscription else None
    return ApiResponse[Optional[SubscriptionResponse]](data=data)


@router.post("/checkout", response_model=ApiResponse[CheckoutResponse])
async def create_checkout(
    payload: CheckoutRequest = Body(...),
    current_user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[CheckoutResponse]:
    """The subscription itself is created by the checkout webhook."""
    try:
        session = await asyncio.to_thread(
            subscription_service.create_checkout, current_user, payload.plan_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[CheckoutResponse](data=CheckoutResponse(**session))


@router.post("/portal", response_model=ApiResponse[PortalResponse])
async def create_portal(
    current_user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[PortalResponse]:
    try:
        session = await asyncio.to_thread(subscription_service.create_portal, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[PortalResponse](data=PortalResponse(**session))


@router.post("/cancel", response_model=ApiResponse[SubscriptionResponse])
async def cancel_subscription(
    current_user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[SubscriptionResponse]:
    try:
        subscription = await asyncio.to_thread(subscription_service.cancel, current_user)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[SubscriptionResponse](
        data=SubscriptionResponse.model_validate(subscription)
    )


@router.get("", response_model=PaginatedResponse[AdminSubscriptionResponse])
async def list_subscriptions(
    subscription_status: Optional[SubscriptionStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    _admin: User = Depends(require_subscription_list),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> PaginatedResponse[AdminSubscriptionResponse]:
    try:
        subscriptions, total = await asyncio.to_thread(
            subscription_service.list_subscriptions,
            status=subscription_status,
            page=page,
            limit=limit,
        )
    except DomainException as e:
        handle_domain_exception(e)
    items = [AdminSubscriptionResponse.model_validate(item) for item in subscriptions]
    return PaginatedResponse[AdminSubscriptionResponse].model_validate(
        create_paginated_response(items, total, page, limit)
    )


@router.post("/grant", response_model=ApiResponse[AdminSubscriptionResponse])
async def grant_subscription(
    payload: GrantRequest = Body(...),
    _admin: User = Depends(require_subscription_grant),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> ApiResponse[AdminSubscriptionResponse]:
    """Give a user an ACTIVE subscription for ``durationDays``."""
    try:
        subscription = await asyncio.to_thread(
            subscription_service.grant, payload.user_id, payload.plan_id, payload.duration_days
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[AdminSubscriptionResponse](
        data=AdminSubscriptionResponse.model_validate(subscription)
    )
