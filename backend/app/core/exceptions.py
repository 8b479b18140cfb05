# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the InSkate platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every exception carries a stable machine-readable ``code`` which the
API renders inside the error envelope.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException carrying the envelope payload."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code or "VALIDATION_ERROR", details)


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(
        self,
        message: str = "Not found",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code or "NOT_FOUND", details)


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code or "CONFLICT", details)


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedException(DomainException):
    """Raised when user is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(
        self,
        message: str = "Authentication required",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code or "UNAUTHORIZED", details)


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(
        self,
        message: str = "Forbidden",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code or "FORBIDDEN", details)


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class UpstreamServiceException(DomainException):
    """Raised when a call to an external provider (Stripe, FCM) fails."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code or "UPSTREAM_ERROR", details)


# Specific business exceptions


class SlotUnavailableException(BusinessRuleException):
    """Raised when a slot is missing, belongs to another coach, or is already taken."""

    def __init__(self, slot_id: Optional[str] = None):
        super().__init__(
            message="Slot is not available",
            code="SLOT_NOT_AVAILABLE",
            details={"slot_id": slot_id} if slot_id else {},
        )


class SlotInPastException(BusinessRuleException):
    """Raised when booking a slot that has already started."""

    def __init__(self, slot_id: Optional[str] = None):
        super().__init__(
            message="Cannot book a slot in the past",
            code="SLOT_IN_PAST",
            details={"slot_id": slot_id} if slot_id else {},
        )


class InvalidPackageException(BusinessRuleException):
    """Raised when a package is missing or owned by someone else."""

    def __init__(self, package_id: Optional[str] = None):
        super().__init__(
            message="Invalid package",
            code="INVALID_PACKAGE",
            details={"package_id": package_id} if package_id else {},
        )


class PackageExhaustedException(BusinessRuleException):
    """Raised when a package has no credits left or has expired."""

    def __init__(self, package_id: Optional[str] = None):
        super().__init__(
            message="Package exhausted or expired",
            code="PACKAGE_EXHAUSTED",
            details={"package_id": package_id} if package_id else {},
        )


class InvalidStatusException(BusinessRuleException):
    """Raised when an entity is in a status that forbids the operation."""

    def __init__(self, current_status: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Cannot perform this action in status {current_status}",
            code="INVALID_STATUS",
            details={"status": current_status},
        )


class SlotBookedException(ConflictException):
    """Raised when deleting a slot that still has an active booking."""

    def __init__(self, slot_id: str):
        super().__init__(
            message="Cannot delete a slot with an active booking",
            code="SLOT_BOOKED",
            details={"slot_id": slot_id},
        )


class AlreadySubscribedException(ConflictException):
    """Raised when starting a checkout while already subscribed."""

    def __init__(self, status_value: str):
        super().__init__(
            message="Already subscribed",
            code="ALREADY_SUBSCRIBED",
            details={"status": status_value},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
