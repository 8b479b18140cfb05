"""
Unified error envelope.

Every error leaves the API as::

    {"success": false, "error": {"code": "...", "message": "...", "details": {...}}}

Routes raise ``HTTPException`` with a ``{"code", "message", "details"}``
detail (``DomainException.to_http_exception``); plain string details get a
code derived from the status.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import DomainException

logger = logging.getLogger(__name__)


def _code_from_status(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        429: "TOO_MANY_REQUESTS",
        500: "INTERNAL_ERROR",
    }
    return mapping.get(status_code, "ERROR")


def _envelope(code: str, message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = jsonable_encoder(details)
    return {"success": False, "error": error}


def _parse_detail(status_code: int, detail: Any) -> Dict[str, Any]:
    if isinstance(detail, dict):
        code = detail.get("code") if isinstance(detail.get("code"), str) else None
        message = detail.get("message") or detail.get("detail")
        return _envelope(
            code or _code_from_status(status_code),
            message if isinstance(message, str) else "",
            detail.get("details"),
        )
    if detail is None:
        return _envelope(_code_from_status(status_code), "")
    return _envelope(_code_from_status(status_code), str(detail))


def _validation_details(exc: Any) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        fields[location or "body"] = error.get("msg")
    return {"fields": fields}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            _parse_detail(exc.status_code, exc.detail),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        http_exc = exc.to_http_exception()
        return JSONResponse(
            _parse_detail(http_exc.status_code, http_exc.detail),
            status_code=http_exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            _envelope("VALIDATION_ERROR", "Invalid request", _validation_details(exc)),
            status_code=400,
        )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            _envelope("VALIDATION_ERROR", "Validation failed", _validation_details(exc)),
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            extra={"path": request.url.path, "method": request.method},
            exc_info=exc,
        )
        return JSONResponse(
            _envelope("INTERNAL_ERROR", "Internal server error"), status_code=500
        )
