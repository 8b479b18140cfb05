# backend/app/services/push_sender.py
"""
Push transport.

``FcmPushSender`` delivers through Firebase Cloud Messaging. When Firebase
credentials are not configured the process uses ``LoggingPushSender``, which
only logs and reports every token as delivered so local development and tests
run without a Firebase project.

The sender is built once per process (``get_push_sender``) and handed to
``PushNotificationService``; nothing else talks to firebase_admin.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Dict, List, Optional, Protocol, Sequence

import firebase_admin
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging

from ..core.config import secret_or_plain, settings

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "inskate"


@dataclass
class PushResult:
    success_count: int = 0
    failure_count: int = 0
    invalid_tokens: List[str] = field(default_factory=list)

    def merge(self, other: "PushResult") -> None:
        self.success_count += other.success_count
        self.failure_count += other.failure_count
        self.invalid_tokens.extend(other.invalid_tokens)


class PushSender(Protocol):
    def send_multicast(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> PushResult:
        """Deliver one message to at most 500 tokens."""
        ...


class LoggingPushSender:
    """Stand-in transport used when Firebase is not configured."""

    def send_multicast(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> PushResult:
        logger.info(
            "push_mock_send",
            extra={"token_count": len(tokens), "title": title, "push_data": data or {}},
        )
        return PushResult(success_count=len(tokens), failure_count=0)


class FcmPushSender:
    """Firebase Cloud Messaging multicast delivery."""

    def __init__(self, app: firebase_admin.App):
        self._app = app

    @classmethod
    def from_settings(cls) -> "FcmPushSender":
        try:
            app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            cred = credentials.Certificate(
                {
                    "type": "service_account",
                    "project_id": settings.firebase_project_id,
                    "private_key": secret_or_plain(settings.firebase_private_key),
                    "client_email": settings.firebase_client_email,
                    "token_uri": "https://oauth2.googleapis.com/token",
                }
            )
            app = firebase_admin.initialize_app(
                cred, {"projectId": settings.firebase_project_id}, name=FIREBASE_APP_NAME
            )
            logger.info("Firebase Admin initialized for project %s", settings.firebase_project_id)
        return cls(app)

    def send_multicast(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> PushResult:
        message = messaging.MulticastMessage(
            tokens=list(tokens),
            notification=messaging.Notification(title=title, body=body),
            data=data,
            android=messaging.AndroidConfig(priority="high"),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=messaging.Aps(badge=1, sound="default"))
            ),
        )
        response = messaging.send_each_for_multicast(message, app=self._app)

        invalid_tokens: List[str] = []
        for token, send_response in zip(tokens, response.responses):
            if send_response.success:
                continue
            if _is_invalid_token_error(send_response.exception):
                invalid_tokens.append(token)
            else:
                logger.warning(
                    "push_send_failed",
                    extra={"error": str(send_response.exception)},
                )
        return PushResult(
            success_count=response.success_count,
            failure_count=response.failure_count,
            invalid_tokens=invalid_tokens,
        )


def _is_invalid_token_error(exc: Optional[Exception]) -> bool:
    """Errors meaning the token will never work again and should be forgotten."""
    return isinstance(
        exc, (messaging.UnregisteredError, firebase_exceptions.InvalidArgumentError)
    )


_sender: Optional[PushSender] = None
_sender_lock = threading.Lock()


def build_push_sender() -> PushSender:
    if settings.firebase_configured:
        return FcmPushSender.from_settings()
    logger.warning("Firebase is not configured; push notifications will only be logged")
    return LoggingPushSender()


def get_push_sender() -> PushSender:
    """Process-wide sender, built on first use."""
    global _sender
    if _sender is not None:
        return _sender
    with _sender_lock:
        if _sender is None:
            _sender = build_push_sender()
        return _sender


def set_push_sender(sender: Optional[PushSender]) -> None:
    """Override the process-wide sender (tests, startup wiring)."""
    global _sender
    _sender = sender
