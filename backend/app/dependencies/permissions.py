# backend/app/dependencies/permissions.py
"""
Permission dependencies for FastAPI endpoints.

Route-level checks for capabilities that do not depend on a concrete entity.
Ownership checks (e.g. cancelling one's own booking) happen in the services,
which call ``AuthorizationService.require`` with the loaded target.
"""

from fastapi import Depends

from ..api.dependencies.auth import get_current_user
from ..api.dependencies.services import get_authorization_service
from ..core.exceptions import ForbiddenException
from ..models.user import User
from ..services.authorization_service import Action, AuthorizationService, Resource


def require_permission(resource: Resource, action: Action):
    """
    Create a dependency that requires ``action`` on ``resource``.

    Example:
        admin = Depends(require_permission(Resource.SLOT, Action.MANAGE))
        @router.post("/slots", dependencies=[admin])
    """

    async def permission_checker(
        current_user: User = Depends(get_current_user),
        authorization: AuthorizationService = Depends(get_authorization_service),
    ) -> User:
        if not authorization.check(current_user, resource, action):
            raise ForbiddenException(
                "Admin access required",
                details={"resource": resource.value, "action": action.value},
            ).to_http_exception()
        return current_user

    return permission_checker
