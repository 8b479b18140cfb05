# backend/tests/routes/test_subscriptions_routes.py
"""Subscription endpoints: self-service and admin."""

from types import SimpleNamespace

import stripe

from app.core.enums import UserRole
from app.models.user import User
from app.services.subscription_service import SubscriptionService


class TestSelfServiceRoutes:
    def test_me_without_subscription(self, client, auth_headers):
        response = client.get("/api/v1/subscriptions/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": None}

    def test_me_with_subscription(self, client, db, auth_headers, test_user, test_plan):
        SubscriptionService(db).grant(test_user.id, test_plan.id)

        data = client.get("/api/v1/subscriptions/me", headers=auth_headers).json()["data"]

        assert data["status"] == "ACTIVE"
        assert data["plan"]["name"] == test_plan.name
        assert "stripeCustomerId" not in data

    def test_checkout(self, client, auth_headers, stripe_mock, test_plan):
        stripe_mock.create_checkout_session.return_value = SimpleNamespace(
            id="cs_1", url="https://checkout.stripe.com/c/cs_1"
        )

        response = client.post(
            "/api/v1/subscriptions/checkout", json={"planId": test_plan.id}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["data"] == {
            "checkoutUrl": "https://checkout.stripe.com/c/cs_1",
            "sessionId": "cs_1",
        }

    def test_checkout_when_subscribed(self, client, db, auth_headers, test_user, test_plan):
        SubscriptionService(db).grant(test_user.id, test_plan.id)

        response = client.post(
            "/api/v1/subscriptions/checkout", json={"planId": test_plan.id}, headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_SUBSCRIBED"

    def test_checkout_stripe_failure(self, client, auth_headers, stripe_mock, test_plan):
        stripe_mock.create_checkout_session.side_effect = stripe.StripeError("down")

        response = client.post(
            "/api/v1/subscriptions/checkout", json={"planId": test_plan.id}, headers=auth_headers
        )

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "CHECKOUT_FAILED"

    def test_portal_without_customer(self, client, auth_headers):
        response = client.post("/api/v1/subscriptions/portal", headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NO_SUBSCRIPTION"

    def test_cancel(self, client, db, auth_headers, test_user, test_plan):
        SubscriptionService(db).grant(test_user.id, test_plan.id)

        response = client.post("/api/v1/subscriptions/cancel", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "CANCELED"
        db.expire_all()
        assert db.get(User, test_user.id).role == UserRole.USER

    def test_cancel_without_subscription(self, client, auth_headers):
        response = client.post("/api/v1/subscriptions/cancel", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NO_SUBSCRIPTION"


class TestAdminSubscriptionRoutes:
    def test_grant(self, client, db, admin_headers, test_user, test_plan):
        response = client.post(
            "/api/v1/subscriptions/grant",
            json={"userId": test_user.id, "planId": test_plan.id, "durationDays": 14},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "ACTIVE"
        db.expire_all()
        assert db.get(User, test_user.id).role == UserRole.SUBSCRIBER

    def test_grant_requires_admin(self, client, auth_headers, test_user, test_plan):
        response = client.post(
            "/api/v1/subscriptions/grant",
            json={"userId": test_user.id, "planId": test_plan.id},
            headers=auth_headers,
        )

        assert response.status_code == 403

    def test_grant_unknown_user(self, client, admin_headers, test_plan):
        response = client.post(
            "/api/v1/subscriptions/grant",
            json={"userId": "01HZZZZZZZZZZZZZZZZZZZZZZZ", "planId": test_plan.id},
            headers=admin_headers,
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"

    def test_list(self, client, db, admin_headers, test_user, other_user, test_plan):
        service = SubscriptionService(db)
        service.grant(test_user.id, test_plan.id)
        service.grant(other_user.id, test_plan.id)

        response = client.get("/api/v1/subscriptions?status=ACTIVE", headers=admin_headers)

        body = response.json()
        assert response.status_code == 200
        assert body["meta"]["total"] == 2
        assert {item["user"]["id"] for item in body["data"]} == {test_user.id, other_user.id}
