"""
Base response schemas for standardized API responses.

Every endpoint answers with the same envelope:

- success: ``{"success": true, "data": ...}``, plus ``meta`` for lists
- failure: ``{"success": false, "error": {"code": ..., "message": ...}}``
"""

import math
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import ConfigDict, Field

from ._strict_base import StrictModel

T = TypeVar("T")


class ApiResponse(StrictModel, Generic[T]):
    """Standard single-object response."""

    success: bool = Field(default=True, description="Operation success status")
    data: Optional[T] = Field(default=None, description="Response payload")


class PaginationMeta(StrictModel):
    page: int = Field(ge=1, description="Current page number")
    limit: int = Field(ge=1, description="Items per page")
    total: int = Field(ge=0, description="Total number of items")
    total_pages: int = Field(ge=0, description="Number of pages")


class PaginatedResponse(StrictModel, Generic[T]):
    """
    Standard paginated response for all list endpoints.

    ``data`` holds the current page; ``meta`` the pagination counters.
    """

    success: bool = Field(default=True)
    data: List[T] = Field(description="List of items")
    meta: PaginationMeta

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "success": True,
                "data": ["..."],
                "meta": {"page": 1, "limit": 20, "total": 100, "totalPages": 5},
            }
        },
    )


class ErrorDetail(StrictModel):
    """Standard error detail structure."""

    code: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Extra context")


class ErrorResponse(StrictModel):
    """Standard error response structure."""

    success: bool = False
    error: ErrorDetail

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "error": {"code": "SLOT_NOT_AVAILABLE", "message": "Slot is not available"},
            }
        }
    )


def create_paginated_response(
    items: List[Any], total: int, page: int = 1, limit: int = 20
) -> Dict[str, Any]:
    """
    Build the paginated envelope for ``items``.

    Returns a plain dict so the route's ``response_model`` validates the items.
    """
    return {
        "success": True,
        "data": items,
        "meta": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }
