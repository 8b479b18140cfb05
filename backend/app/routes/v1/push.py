# backend/app/routes/v1/push.py
"""
Push notification routes - API v1

Endpoints:
    POST /send - Admin broadcast, immediate or scheduled
    GET / - Admin listing (``pending=true`` for scheduled and unsent)
    DELETE /{notification_id} - Admin cancel of a scheduled notification
    POST /device-tokens - Register the caller's FCM device token
"""

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_current_user, get_push_notification_service
from ...core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from ...core.exceptions import DomainException
from ...dependencies.permissions import require_permission
from ...models.user import User
from ...schemas.base_responses import ApiResponse, PaginatedResponse, create_paginated_response
from ...schemas.push import (
    DeviceTokenRequest,
    DeviceTokenResponse,
    PushNotificationResponse,
    PushSendRequest,
    PushSendResponse,
)
from ...services.authorization_service import Action, Resource
from ...services.push_notification_service import PushNotificationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["push-v1"])

require_push_admin = require_permission(Resource.PUSH, Action.MANAGE)


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/send", response_model=ApiResponse[PushSendResponse])
async def send_push(
    payload: PushSendRequest = Body(...),
    _admin: User = Depends(require_push_admin),
    push_service: PushNotificationService = Depends(get_push_notification_service),
) -> ApiResponse[PushSendResponse]:
    """Send to a segment now, or store for the scheduler when ``scheduledAt`` is set."""
    try:
        notification, result = await asyncio.to_thread(
            lambda: push_service.send_now_or_schedule(
                title=payload.title,
                body=payload.body,
                segment=payload.segment.value,
                data=payload.data,
                scheduled_at=payload.scheduled_at,
            )
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[PushSendResponse](
        data=PushSendResponse(
            notification=PushNotificationResponse.model_validate(notification),
            scheduled=result is None,
            success_count=result.success_count if result else 0,
            failure_count=result.failure_count if result else 0,
        )
    )


@router.get("", response_model=PaginatedResponse[PushNotificationResponse])
async def list_push_notifications(
    pending: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    _admin: User = Depends(require_push_admin),
    push_service: PushNotificationService = Depends(get_push_notification_service),
) -> PaginatedResponse[PushNotificationResponse]:
    try:
        notifications, total = await asyncio.to_thread(
            lambda: push_service.list_notifications(pending=pending, page=page, limit=limit)
        )
    except DomainException as e:
        handle_domain_exception(e)
    items = [PushNotificationResponse.model_validate(item) for item in notifications]
    return PaginatedResponse[PushNotificationResponse].model_validate(
        create_paginated_response(items, total, page, limit)
    )


@router.post(
    "/device-tokens",
    response_model=ApiResponse[DeviceTokenResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register_device_token(
    payload: DeviceTokenRequest = Body(...),
    current_user: User = Depends(get_current_user),
    push_service: PushNotificationService = Depends(get_push_notification_service),
) -> ApiResponse[DeviceTokenResponse]:
    try:
        device_token = await asyncio.to_thread(
            push_service.register_device_token,
            current_user,
            payload.token,
            payload.platform.value,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[DeviceTokenResponse](data=DeviceTokenResponse.model_validate(device_token))


@router.delete("/{notification_id}", response_model=ApiResponse[None])
async def cancel_push_notification(
    notification_id: str,
    _admin: User = Depends(require_push_admin),
    push_service: PushNotificationService = Depends(get_push_notification_service),
) -> ApiResponse[None]:
    """Delete a scheduled notification that has not been sent."""
    try:
        await asyncio.to_thread(push_service.cancel_scheduled, notification_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[None]()
