# backend/tests/services/test_push_notification_service.py
"""
PushNotificationService tests: batching, invalid token cleanup, segments,
scheduling and exactly-once dispatch.
"""

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.enums import PushSegment
from app.core.exceptions import BusinessRuleException, NotFoundException
from app.core.timezone_utils import utc_now
from app.models.push_notification import PushNotification
from app.models.user import DeviceToken
from app.services.push_notification_service import PushNotificationService
from app.services.subscription_service import SubscriptionService


@pytest.fixture
def push_service(db: Session, push_sender) -> PushNotificationService:
    return PushNotificationService(db, push_sender)


def _schedule(push_service, minutes: int = 10, segment: str = PushSegment.ALL):
    notification, _ = push_service.send_now_or_schedule(
        title="Ice time",
        body="Rink opens early tomorrow",
        segment=segment,
        scheduled_at=utc_now() + timedelta(minutes=minutes),
    )
    return notification


def _make_due(db: Session, notification: PushNotification) -> None:
    notification.scheduled_at = utc_now() - timedelta(minutes=1)
    db.commit()


class TestSend:
    def test_empty_token_list_sends_nothing(self, push_service, push_sender):
        result = push_service.send([], "t", "b")

        assert (result.success_count, result.failure_count) == (0, 0)
        assert push_sender.calls == []

    def test_tokens_are_batched(self, push_service, push_sender, monkeypatch):
        monkeypatch.setattr(settings, "push_batch_size", 2)

        result = push_service.send(["a", "b", "c", "d", "e"], "t", "b")

        assert [call["tokens"] for call in push_sender.calls] == [["a", "b"], ["c", "d"], ["e"]]
        assert result.success_count == 5

    def test_data_values_are_stringified(self, push_service, push_sender):
        push_service.send(["a"], "t", "b", {"bookingId": "b1", "count": 3})

        assert push_sender.calls[0]["data"] == {"bookingId": "b1", "count": "3"}

    def test_invalid_tokens_are_removed(
        self, db, push_service, push_sender, add_device_token, test_user
    ):
        add_device_token(test_user, "good-token")
        add_device_token(test_user, "dead-token")
        push_sender.invalid = {"dead-token"}

        result = push_service.send_to_user(test_user.id, "t", "b")

        assert (result.success_count, result.failure_count) == (1, 1)
        db.expire_all()
        remaining = [token.token for token in db.query(DeviceToken).all()]
        assert remaining == ["good-token"]

    def test_user_without_tokens_gets_nothing(self, push_service, push_sender, test_user):
        result = push_service.send_to_user(test_user.id, "t", "b")

        assert result.success_count == 0
        assert push_sender.calls == []


class TestSegments:
    @pytest.fixture
    def audience(self, db, add_device_token, test_user, other_user, test_plan):
        add_device_token(test_user, "subscriber-token")
        add_device_token(other_user, "free-token")
        SubscriptionService(db).grant(test_user.id, test_plan.id)

    @pytest.mark.parametrize(
        "segment,expected",
        [
            (PushSegment.ALL, {"subscriber-token", "free-token"}),
            (PushSegment.SUBSCRIBERS, {"subscriber-token"}),
            (PushSegment.NON_SUBSCRIBERS, {"free-token"}),
        ],
    )
    def test_segment_audience(self, push_service, push_sender, audience, segment, expected):
        push_service.send_to_segment(segment, "t", "b")

        assert set(push_sender.sent_tokens) == expected


class TestDeviceTokens:
    def test_register_is_idempotent_per_token(self, db, push_service, test_user, other_user):
        push_service.register_device_token(test_user, "device-1", "ios")
        moved = push_service.register_device_token(other_user, "device-1", "android")

        db.expire_all()
        tokens = db.query(DeviceToken).all()
        assert len(tokens) == 1
        assert tokens[0].id == moved.id
        assert tokens[0].user_id == other_user.id
        assert tokens[0].platform == "android"


class TestBroadcast:
    def test_send_now_records_counts(
        self, db, push_service, push_sender, add_device_token, test_user
    ):
        add_device_token(test_user, "token-1")

        notification, result = push_service.send_now_or_schedule(title="Hello", body="World")

        assert result.success_count == 1
        db.expire_all()
        stored = db.get(PushNotification, notification.id)
        assert stored.sent_at is not None
        assert stored.success_count == 1
        assert push_service.get_due_notification_ids() == []

    def test_schedule_stores_without_sending(self, push_service, push_sender):
        notification = _schedule(push_service)

        assert notification.sent_at is None
        assert notification.scheduled_at is not None
        assert push_sender.calls == []

    def test_schedule_in_past_is_rejected(self, push_service):
        with pytest.raises(BusinessRuleException) as exc_info:
            push_service.send_now_or_schedule(
                title="t", body="b", scheduled_at=utc_now() - timedelta(seconds=1)
            )
        assert exc_info.value.code == "INVALID_SCHEDULE"

    def test_due_ids_only_include_past_unsent(self, db, push_service):
        due = _schedule(push_service)
        _schedule(push_service, minutes=60)
        _make_due(db, due)

        assert push_service.get_due_notification_ids() == [due.id]

    def test_pending_listing(self, push_service):
        _schedule(push_service)
        push_service.send_now_or_schedule(title="now", body="now")

        pending, pending_total = push_service.list_notifications(pending=True)
        _, total = push_service.list_notifications()

        assert pending_total == 1
        assert pending[0].sent_at is None
        assert total == 2


class TestDispatchScheduled:
    def test_dispatches_once(self, db, push_service, push_sender, add_device_token, test_user):
        add_device_token(test_user, "token-1")
        notification = _schedule(push_service)
        _make_due(db, notification)

        first = push_service.dispatch_scheduled(notification.id)
        second = push_service.dispatch_scheduled(notification.id)

        assert first.success_count == 1
        assert second is None
        assert len(push_sender.calls) == 1
        db.expire_all()
        stored = db.get(PushNotification, notification.id)
        assert stored.sent_at is not None
        assert stored.success_count == 1

    def test_unknown_notification(self, push_service):
        assert push_service.dispatch_scheduled("01HZZZZZZZZZZZZZZZZZZZZZZZ") is None


class TestCancelScheduled:
    def test_cancel_deletes_pending(self, db, push_service):
        notification_id = _schedule(push_service).id

        push_service.cancel_scheduled(notification_id)

        db.expire_all()
        assert db.query(PushNotification).filter_by(id=notification_id).first() is None

    def test_cannot_cancel_sent(self, push_service):
        notification, _ = push_service.send_now_or_schedule(title="t", body="b")

        with pytest.raises(BusinessRuleException) as exc_info:
            push_service.cancel_scheduled(notification.id)
        assert exc_info.value.code == "ALREADY_SENT"

    def test_cannot_cancel_after_dispatch(self, db, push_service):
        notification = _schedule(push_service)
        _make_due(db, notification)
        push_service.dispatch_scheduled(notification.id)

        with pytest.raises(BusinessRuleException):
            push_service.cancel_scheduled(notification.id)

    def test_unknown_notification(self, push_service):
        with pytest.raises(NotFoundException):
            push_service.cancel_scheduled("01HZZZZZZZZZZZZZZZZZZZZZZZ")
