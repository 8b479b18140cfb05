# backend/app/tasks/push_tasks.py
"""
Celery tasks for scheduled push notifications.

Implements a two-step workflow:
1. ``push.enqueue_due`` runs on beat and enqueues one delivery job per due
   notification, using the job id ``push:<notification id>``. The job id is
   claimed in the JobDeduplicator first, so overlapping beats never enqueue
   the same notification twice.
2. ``push.send_scheduled`` claims the notification row (``sent_at`` set only
   while NULL) and delivers it. A job that loses the claim does nothing.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from celery.utils.log import get_task_logger
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.job_dedup import get_job_deduplicator
from app.database import SessionLocal
from app.services.push_notification_service import PushNotificationService
from app.tasks.celery_app import celery_app

logger = get_task_logger(__name__)

ENQUEUE_BATCH_LIMIT = 200


def push_job_id(notification_id: str) -> str:
    return f"push:{notification_id}"


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Provide transactional scope for use in tasks."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@celery_app.task(name="push.enqueue_due", max_retries=0, queue="notifications")
def enqueue_due() -> int:
    """
    Enqueue a delivery job for every due, unsent notification.

    Returns the number of jobs enqueued.
    """
    with _session_scope() as session:
        due_ids = PushNotificationService(session).get_due_notification_ids(
            limit=ENQUEUE_BATCH_LIMIT
        )

    deduplicator = get_job_deduplicator()
    enqueued = 0
    for notification_id in due_ids:
        job_id = push_job_id(notification_id)
        if not deduplicator.claim(job_id, settings.push_dedup_ttl_seconds):
            logger.info("Push job %s already enqueued; skipping", job_id)
            continue
        try:
            send_scheduled.apply_async(args=[notification_id], task_id=job_id)
        except Exception:
            # Let the next beat retry this notification
            deduplicator.release(job_id)
            raise
        enqueued += 1

    if enqueued:
        logger.info("Enqueued %s scheduled push notifications", enqueued)
    return enqueued


@celery_app.task(name="push.send_scheduled", max_retries=0, queue="notifications")
def send_scheduled(notification_id: str) -> Optional[dict]:
    """
    Deliver one scheduled notification.

    Returns the delivery counts, or None when another job already sent it.
    """
    with _session_scope() as session:
        result = PushNotificationService(session).dispatch_scheduled(notification_id)
    if result is None:
        return None
    return {"success_count": result.success_count, "failure_count": result.failure_count}
