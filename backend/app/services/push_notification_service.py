# backend/app/services/push_notification_service.py
"""
Push notification service: device tokens, delivery and admin broadcasts.

Delivery is best-effort. Tokens that FCM reports as invalid or unregistered
are deleted so they are not retried on the next send.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import PushSegment
from ..core.exceptions import BusinessRuleException, NotFoundException
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.push_notification import PushNotification
from ..models.user import DeviceToken, User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..repositories.push_notification_repository import PushNotificationRepository
from ..repositories.user_repository import DeviceTokenRepository
from .base import BaseService
from .push_sender import PushResult, PushSender, get_push_sender

logger = logging.getLogger(__name__)


def _stringify_data(data: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
    # FCM data payloads only carry string values
    if not data:
        return None
    return {str(key): str(value) for key, value in data.items()}


class PushNotificationService(BaseService):
    """Service for device tokens and push delivery."""

    def __init__(
        self,
        db: Session,
        sender: Optional[PushSender] = None,
        device_token_repository: Optional[DeviceTokenRepository] = None,
        notification_repository: Optional[PushNotificationRepository] = None,
    ) -> None:
        super().__init__(db)
        self.sender = sender or get_push_sender()
        self.device_token_repository = (
            device_token_repository or RepositoryFactory.create_device_token_repository(db)
        )
        self.notification_repository = (
            notification_repository or RepositoryFactory.create_push_notification_repository(db)
        )

    # Delivery

    @BaseService.measure_operation("send")
    def send(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> PushResult:
        """
        Send one message to a list of device tokens.

        Tokens are sent in batches of ``settings.push_batch_size`` (FCM caps a
        multicast at 500). Invalid tokens are removed from storage.

        Returns:
            Aggregated success/failure counts
        """
        total = PushResult()
        if not tokens:
            return total

        payload = _stringify_data(data)
        token_list = list(tokens)
        batch_size = settings.push_batch_size
        for start in range(0, len(token_list), batch_size):
            batch = token_list[start : start + batch_size]
            total.merge(self.sender.send_multicast(batch, title, body, payload))

        if total.invalid_tokens:
            self._forget_tokens(total.invalid_tokens)

        prometheus_metrics.inc_push_sends("success", total.success_count)
        prometheus_metrics.inc_push_sends("failure", total.failure_count)
        prometheus_metrics.inc_push_sends("invalid_token", len(total.invalid_tokens))
        self.logger.info(
            "push_sent",
            extra={
                "success_count": total.success_count,
                "failure_count": total.failure_count,
                "invalid_tokens": len(total.invalid_tokens),
            },
        )
        return total

    def _forget_tokens(self, tokens: List[str]) -> None:
        with self.transaction():
            removed = self.device_token_repository.delete_tokens(tokens)
        self.logger.info("push_invalid_tokens_removed", extra={"count": removed})

    @BaseService.measure_operation("send_to_user")
    def send_to_user(
        self,
        user_id: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> PushResult:
        tokens = self.device_token_repository.get_tokens_for_user(user_id)
        if not tokens:
            self.logger.debug("push_no_device_tokens", extra={"user_id": user_id})
            return PushResult()
        return self.send(tokens, title, body, data)

    @BaseService.measure_operation("send_to_segment")
    def send_to_segment(
        self,
        segment: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> PushResult:
        tokens = self.device_token_repository.get_tokens_for_segment(segment)
        return self.send(tokens, title, body, data)

    # Device tokens

    @BaseService.measure_operation("register_device_token")
    def register_device_token(self, user: User, token: str, platform: str) -> DeviceToken:
        """Upsert a device token by its value; re-registering moves it to ``user``."""
        with self.transaction():
            device_token = self.device_token_repository.upsert(user.id, token, platform)
        self.log_operation("register_device_token", user_id=user.id, platform=platform)
        return device_token

    # Admin broadcasts

    @BaseService.measure_operation("send_now_or_schedule")
    def send_now_or_schedule(
        self,
        *,
        title: str,
        body: str,
        segment: str = PushSegment.ALL,
        data: Optional[Dict[str, Any]] = None,
        scheduled_at: Optional[datetime] = None,
    ) -> Tuple[PushNotification, Optional[PushResult]]:
        """
        Send a broadcast immediately or store it for the scheduler.

        Raises:
            BusinessRuleException: INVALID_SCHEDULE when ``scheduled_at`` is not in the future
        """
        now = utc_now()
        if scheduled_at is not None:
            scheduled_at = ensure_utc(scheduled_at)
            if scheduled_at <= now:
                raise BusinessRuleException(
                    "Scheduled time must be in the future", code="INVALID_SCHEDULE"
                )
            with self.transaction():
                notification = self.notification_repository.create(
                    title=title,
                    body=body,
                    segment=segment,
                    data=data,
                    scheduled_at=scheduled_at,
                )
            self.log_operation(
                "schedule_push", notification_id=notification.id, segment=segment
            )
            return notification, None

        # Record first with sent_at claimed so the scheduler never picks it up
        with self.transaction():
            notification = self.notification_repository.create(
                title=title, body=body, segment=segment, data=data, sent_at=now
            )
        result = self.send_to_segment(segment, title, body, data)
        with self.transaction():
            notification.success_count = result.success_count
            notification.failure_count = result.failure_count
        return notification, result

    @BaseService.measure_operation("dispatch_scheduled")
    def dispatch_scheduled(self, notification_id: str) -> Optional[PushResult]:
        """
        Deliver a scheduled notification exactly once.

        Returns:
            The delivery result, or None when the notification is gone or was
            already claimed by another job
        """
        with self.transaction():
            claimed = self.notification_repository.claim_for_sending(notification_id, utc_now())
        if not claimed:
            self.logger.info("push_dispatch_skipped", extra={"notification_id": notification_id})
            return None

        notification = self.notification_repository.get_by_id(notification_id)
        if notification is None:
            return None
        self.db.refresh(notification)
        result = self.send_to_segment(
            notification.segment, notification.title, notification.body, notification.data
        )
        with self.transaction():
            self.notification_repository.record_result(
                notification_id, result.success_count, result.failure_count
            )
        return result

    @BaseService.measure_operation("get_due_notification_ids")
    def get_due_notification_ids(self, limit: Optional[int] = None) -> List[str]:
        return self.notification_repository.get_due_ids(utc_now(), limit=limit)

    @BaseService.measure_operation("list_notifications")
    def list_notifications(
        self, *, pending: bool = False, page: int = 1, limit: int = 20
    ) -> Tuple[List[PushNotification], int]:
        return self.notification_repository.list_notifications(
            pending=pending, page=page, limit=limit
        )

    @BaseService.measure_operation("cancel_scheduled")
    def cancel_scheduled(self, notification_id: str) -> None:
        """
        Delete a scheduled notification that has not gone out yet.

        Raises:
            NotFoundException: Unknown notification
            BusinessRuleException: ALREADY_SENT
        """
        notification = self.notification_repository.get_by_id(notification_id)
        if notification is None:
            raise NotFoundException("Notification not found")
        if notification.sent_at is not None:
            raise BusinessRuleException("Notification already sent", code="ALREADY_SENT")
        with self.transaction():
            deleted = self.notification_repository.delete_unsent(notification_id)
        if not deleted:
            # Claimed by the dispatcher between the read and the delete
            raise BusinessRuleException("Notification already sent", code="ALREADY_SENT")
        self.log_operation("cancel_scheduled_push", notification_id=notification_id)
