# backend/app/services/authorization_service.py
"""
Capability-based authorization.

Every access decision goes through ``check(actor, resource, action)`` so the
rules live in one table that can be tested without the HTTP layer:

- ADMIN may do everything.
- A user may view and cancel a booking they own.
- Any authenticated user may create bookings, manage their own subscription
  and register their own device tokens.
- Slot management, booking status changes, subscription grants/listings and
  push administration are admin only.
"""

from enum import Enum
import logging
from typing import Any, Optional

from ..core.enums import UserRole
from ..core.exceptions import ForbiddenException

logger = logging.getLogger(__name__)


class Resource(str, Enum):
    BOOKING = "booking"
    SLOT = "slot"
    SUBSCRIPTION = "subscription"
    PUSH = "push"
    DEVICE_TOKEN = "device_token"


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    CANCEL = "cancel"
    LIST = "list"
    MANAGE = "manage"
    GRANT = "grant"


# (resource, action) pairs any authenticated user holds on their own data
_SELF_SERVICE = {
    (Resource.BOOKING, Action.CREATE),
    (Resource.BOOKING, Action.VIEW),
    (Resource.BOOKING, Action.CANCEL),
    (Resource.SUBSCRIPTION, Action.VIEW),
    (Resource.SUBSCRIPTION, Action.CREATE),
    (Resource.SUBSCRIPTION, Action.CANCEL),
    (Resource.DEVICE_TOKEN, Action.CREATE),
}


class AuthorizationService:
    """Stateless policy evaluator."""

    def check(
        self,
        actor: Any,
        resource: Resource,
        action: Action,
        target: Optional[Any] = None,
    ) -> bool:
        """
        Decide whether ``actor`` may perform ``action`` on ``resource``.

        Args:
            actor: Authenticated user (needs ``id`` and ``role``)
            resource: Kind of resource being accessed
            action: Action attempted
            target: Concrete entity, used for ownership checks

        Returns:
            True when allowed
        """
        if actor is None:
            return False
        if actor.role == UserRole.ADMIN:
            return True
        if (resource, action) not in _SELF_SERVICE:
            return False
        if target is None:
            return True
        owner_id = getattr(target, "user_id", None)
        return owner_id is not None and owner_id == actor.id

    def require(
        self,
        actor: Any,
        resource: Resource,
        action: Action,
        target: Optional[Any] = None,
        message: Optional[str] = None,
    ) -> None:
        """Raise ForbiddenException unless ``check`` allows the access."""
        if not self.check(actor, resource, action, target):
            logger.info(
                "authorization_denied",
                extra={
                    "actor_id": getattr(actor, "id", None),
                    "resource": resource.value,
                    "action": action.value,
                },
            )
            raise ForbiddenException(message or f"Cannot {action.value} this {resource.value}")
