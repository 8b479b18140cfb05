# backend/app/schemas/coach.py
"""Schemas for coach slots."""

from datetime import datetime
from typing import List

from pydantic import Field

from ._strict_base import StrictModel, StrictRequestModel


class SlotInterval(StrictRequestModel):
    start_at: datetime
    end_at: datetime


class SlotBulkCreate(StrictRequestModel):
    """Create several slots for one coach in a single request."""

    coach_id: str = Field(..., min_length=1)
    slots: List[SlotInterval] = Field(..., min_length=1, max_length=200)


class SlotsCreatedResponse(StrictModel):
    count: int


class SlotResponse(StrictModel):
    id: str
    coach_id: str
    start_at: datetime
    end_at: datetime
    is_available: bool
