# backend/app/schemas/push.py
"""Schemas for push notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import Field

from ..core.constants import MAX_PUSH_BODY_LENGTH, MAX_PUSH_TITLE_LENGTH
from ..core.enums import DevicePlatform, PushSegment
from ._strict_base import StrictModel, StrictRequestModel


class PushSendRequest(StrictRequestModel):
    """Broadcast to a segment now, or at ``scheduled_at``."""

    title: str = Field(..., min_length=1, max_length=MAX_PUSH_TITLE_LENGTH)
    body: str = Field(..., min_length=1, max_length=MAX_PUSH_BODY_LENGTH)
    segment: PushSegment = PushSegment.ALL
    scheduled_at: Optional[datetime] = None
    data: Optional[Dict[str, str]] = None


class PushNotificationResponse(StrictModel):
    id: str
    title: str
    body: str
    segment: PushSegment
    data: Optional[Dict[str, str]] = None
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    success_count: int
    failure_count: int
    created_at: datetime


class PushSendResponse(StrictModel):
    notification: PushNotificationResponse
    scheduled: bool
    success_count: int = 0
    failure_count: int = 0


class DeviceTokenRequest(StrictRequestModel):
    token: str = Field(..., min_length=1, max_length=512)
    platform: DevicePlatform


class DeviceTokenResponse(StrictModel):
    id: str
    platform: DevicePlatform
    created_at: datetime
