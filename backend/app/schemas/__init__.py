# backend/app/schemas/__init__.py
"""
Pydantic schemas for the InSkate platform.
"""

from .base_responses import (
    ApiResponse,
    ErrorDetail,
    ErrorResponse,
    PaginatedResponse,
    PaginationMeta,
    create_paginated_response,
)
from .booking import (
    AdminBookingResponse,
    BookingCreate,
    BookingPackageResponse,
    BookingResponse,
    BookingStatusUpdate,
)
from .coach import SlotBulkCreate, SlotResponse, SlotsCreatedResponse
from .push import (
    DeviceTokenRequest,
    DeviceTokenResponse,
    PushNotificationResponse,
    PushSendRequest,
    PushSendResponse,
)
from .subscription import (
    AdminSubscriptionResponse,
    CheckoutRequest,
    CheckoutResponse,
    GrantRequest,
    PortalResponse,
    SubscriptionResponse,
)
from .webhook_responses import WebhookAckResponse

__all__ = [
    "AdminBookingResponse",
    "AdminSubscriptionResponse",
    "ApiResponse",
    "BookingCreate",
    "BookingPackageResponse",
    "BookingResponse",
    "BookingStatusUpdate",
    "CheckoutRequest",
    "CheckoutResponse",
    "DeviceTokenRequest",
    "DeviceTokenResponse",
    "ErrorDetail",
    "ErrorResponse",
    "GrantRequest",
    "PaginatedResponse",
    "PaginationMeta",
    "PortalResponse",
    "PushNotificationResponse",
    "PushSendRequest",
    "PushSendResponse",
    "SlotBulkCreate",
    "SlotResponse",
    "SlotsCreatedResponse",
    "SubscriptionResponse",
    "WebhookAckResponse",
    "create_paginated_response",
]
