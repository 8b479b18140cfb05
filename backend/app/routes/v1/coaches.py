# backend/app/routes/v1/coaches.py
"""
Coach slot routes - API v1

Endpoints:
    GET /{coach_id}/slots - Public listing of bookable slots
    POST /slots - Admin bulk slot creation
    DELETE /slots/{slot_id} - Admin slot deletion
"""

import asyncio
from datetime import datetime
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ...api.dependencies import get_slot_service
from ...core.exceptions import DomainException
from ...dependencies.permissions import require_permission
from ...models.user import User
from ...schemas.base_responses import ApiResponse
from ...schemas.coach import SlotBulkCreate, SlotResponse, SlotsCreatedResponse
from ...services.authorization_service import Action, Resource
from ...services.slot_service import SlotService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["coaches-v1"])

require_slot_admin = require_permission(Resource.SLOT, Action.MANAGE)


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post(
    "/slots",
    response_model=ApiResponse[SlotsCreatedResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_slots(
    payload: SlotBulkCreate = Body(...),
    _admin: User = Depends(require_slot_admin),
    slot_service: SlotService = Depends(get_slot_service),
) -> ApiResponse[SlotsCreatedResponse]:
    intervals = [(slot.start_at, slot.end_at) for slot in payload.slots]
    try:
        count = await asyncio.to_thread(slot_service.create_slots, payload.coach_id, intervals)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[SlotsCreatedResponse](data=SlotsCreatedResponse(count=count))


@router.delete("/slots/{slot_id}", response_model=ApiResponse[None])
async def delete_slot(
    slot_id: str,
    _admin: User = Depends(require_slot_admin),
    slot_service: SlotService = Depends(get_slot_service),
) -> ApiResponse[None]:
    """Delete a slot unless a pending or confirmed booking holds it."""
    try:
        await asyncio.to_thread(slot_service.delete_slot, slot_id)
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[None]()


@router.get("/{coach_id}/slots", response_model=ApiResponse[List[SlotResponse]])
async def get_available_slots(
    coach_id: str,
    window_start: Optional[datetime] = Query(None, alias="from"),
    window_end: Optional[datetime] = Query(None, alias="to"),
    slot_service: SlotService = Depends(get_slot_service),
) -> ApiResponse[List[SlotResponse]]:
    """Bookable future slots of an active coach, 30 days ahead by default."""
    try:
        slots = await asyncio.to_thread(
            slot_service.get_available_slots, coach_id, window_start, window_end
        )
    except DomainException as e:
        handle_domain_exception(e)
    return ApiResponse[List[SlotResponse]](
        data=[SlotResponse.model_validate(slot) for slot in slots]
    )
