# backend/app/models/coach.py
"""
Coach and bookable slot models.

A slot is a coach's bookable time interval. Its ``is_available`` flag is only
toggled by the booking lifecycle; reservation is a conditional update on that
flag so a slot is never handed to two bookings.
"""

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class Coach(Base):
    __tablename__ = "coaches"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(100), nullable=False)
    level = Column(String(50), nullable=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(String(500), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    slots = relationship("CoachSlot", back_populates="coach", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Coach {self.id}: {self.name}>"


class CoachSlot(Base):
    __tablename__ = "coach_slots"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    coach_id = Column(
        String(26), ForeignKey("coaches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    coach = relationship("Coach", back_populates="slots")

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_coach_slots_time_order"),
        Index("ix_coach_slots_coach_start", "coach_id", "start_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<CoachSlot {self.id}: coach={self.coach_id}, "
            f"{self.start_at}-{self.end_at}, available={self.is_available}>"
        )
