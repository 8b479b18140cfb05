# backend/app/tasks/__init__.py
"""
Celery tasks package for InSkate.

Currently hosts the scheduled push notification dispatch.
"""

from app.tasks.celery_app import BaseTask, celery_app
from app.tasks.push_tasks import enqueue_due, send_scheduled

__all__ = [
    "BaseTask",
    "celery_app",
    "enqueue_due",
    "send_scheduled",
]
