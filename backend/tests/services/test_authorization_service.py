# backend/tests/services/test_authorization_service.py
"""Policy table tests for AuthorizationService."""

from types import SimpleNamespace

import pytest

from app.core.enums import UserRole
from app.core.exceptions import ForbiddenException
from app.services.authorization_service import Action, AuthorizationService, Resource

ADMIN_ONLY = [
    (Resource.SLOT, Action.MANAGE),
    (Resource.BOOKING, Action.MANAGE),
    (Resource.BOOKING, Action.LIST),
    (Resource.SUBSCRIPTION, Action.GRANT),
    (Resource.SUBSCRIPTION, Action.LIST),
    (Resource.PUSH, Action.MANAGE),
]


def _actor(role: UserRole, actor_id: str = "user-1"):
    return SimpleNamespace(id=actor_id, role=role.value)


@pytest.fixture
def authorization() -> AuthorizationService:
    return AuthorizationService()


class TestAuthorizationService:
    @pytest.mark.parametrize("resource,action", ADMIN_ONLY)
    def test_admin_only_capabilities(self, authorization, resource, action):
        assert authorization.check(_actor(UserRole.ADMIN), resource, action) is True
        for role in (UserRole.USER, UserRole.SUBSCRIBER, UserRole.COACH):
            assert authorization.check(_actor(role), resource, action) is False

    def test_owner_may_cancel_own_booking(self, authorization):
        booking = SimpleNamespace(user_id="user-1")

        assert authorization.check(
            _actor(UserRole.USER), Resource.BOOKING, Action.CANCEL, target=booking
        )
        assert not authorization.check(
            _actor(UserRole.USER, "user-2"), Resource.BOOKING, Action.CANCEL, target=booking
        )

    def test_admin_may_cancel_any_booking(self, authorization):
        booking = SimpleNamespace(user_id="someone-else")

        assert authorization.check(
            _actor(UserRole.ADMIN, "admin"), Resource.BOOKING, Action.CANCEL, target=booking
        )

    def test_self_service_without_target(self, authorization):
        actor = _actor(UserRole.USER)

        assert authorization.check(actor, Resource.BOOKING, Action.CREATE)
        assert authorization.check(actor, Resource.SUBSCRIPTION, Action.CANCEL)
        assert authorization.check(actor, Resource.DEVICE_TOKEN, Action.CREATE)

    def test_anonymous_is_denied(self, authorization):
        assert authorization.check(None, Resource.BOOKING, Action.CREATE) is False

    def test_require_raises_forbidden(self, authorization):
        with pytest.raises(ForbiddenException) as exc_info:
            authorization.require(
                _actor(UserRole.USER),
                Resource.PUSH,
                Action.MANAGE,
                message="Admin access required",
            )
        assert exc_info.value.message == "Admin access required"
        assert exc_info.value.status_code == 403
