"""
Database models for the InSkate platform.

This module exports all SQLAlchemy models used in the application:
- Users and their device tokens
- Coaches and bookable slots
- Bookings and prepaid packages
- Plans and subscriptions
- Push notification records
"""

from .booking import Booking, BookingPackage
from .coach import Coach, CoachSlot
from .push_notification import PushNotification
from .subscription import Plan, Subscription
from .user import DeviceToken, User

__all__ = [
    "Booking",
    "BookingPackage",
    "Coach",
    "CoachSlot",
    "DeviceToken",
    "Plan",
    "PushNotification",
    "Subscription",
    "User",
]
