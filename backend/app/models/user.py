# backend/app/models/user.py
"""
User model for the InSkate platform.

Users authenticate through an external OTP flow; this service only stores the
profile, the role and the device tokens used for push delivery.

Classes:
    User: Account with a role mirrored from the subscription status
    DeviceToken: FCM registration token of one of the user's devices
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import DevicePlatform, UserRole
from ..database import Base


class User(Base):
    """
    Account record.

    ``role`` is rewritten by the subscription lifecycle (USER <-> SUBSCRIBER);
    ADMIN and COACH are assigned manually.
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    phone = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.USER, index=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    device_tokens = relationship(
        "DeviceToken", back_populates="user", cascade="all, delete-orphan"
    )
    subscription = relationship("Subscription", back_populates="user", uselist=False)

    def __repr__(self) -> str:
        return f"<User {self.id}: role={self.role}>"


class DeviceToken(Base):
    """FCM registration token; unique across users."""

    __tablename__ = "device_tokens"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token = Column(String(512), unique=True, nullable=False)
    platform = Column(String(10), nullable=False, default=DevicePlatform.ANDROID)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="device_tokens")
