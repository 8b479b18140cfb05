"""
Push notification audit/schedule records.

A record is created by an admin action. It moves from scheduled to sent
exactly once: ``sent_at`` is claimed with a conditional update before any
delivery happens.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.types import JSON
import ulid

from ..core.enums import PushSegment
from ..database import Base


class PushNotification(Base):
    __tablename__ = "push_notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    title = Column(String(100), nullable=False)
    body = Column(Text, nullable=False)
    segment = Column(String(20), nullable=False, default=PushSegment.ALL)
    data = Column(JSON, nullable=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    success_count = Column(Integer, nullable=False, default=0)
    failure_count = Column(Integer, nullable=False, default=0)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        CheckConstraint(
            "segment IN ('all', 'subscribers', 'non_subscribers')",
            name="ck_push_notifications_segment",
        ),
        Index("ix_push_notifications_due", "sent_at", "scheduled_at"),
    )

    @property
    def is_sent(self) -> bool:
        return self.sent_at is not None

    def __repr__(self) -> str:
        return f"<PushNotification {self.id}: segment={self.segment}, sent={self.is_sent}>"
