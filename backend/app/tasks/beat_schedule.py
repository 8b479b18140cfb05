# backend/app/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for InSkate.
"""

from datetime import timedelta
from typing import Any, Dict

from app.core.config import settings


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    """Periodic tasks, with intervals taken from settings."""
    return {
        # Scheduled push notifications: enqueue everything that is due
        "push-enqueue-due": {
            "task": "push.enqueue_due",
            "schedule": timedelta(seconds=settings.push_scheduler_interval_seconds),
            "options": {
                "queue": "notifications",
                # A missed tick is superseded by the next one
                "expires": settings.push_scheduler_interval_seconds,
            },
        },
    }
