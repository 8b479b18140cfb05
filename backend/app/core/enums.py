# backend/app/core/enums.py
"""
Core enums for the InSkate platform.

This module contains enumeration types used throughout the application
for type safety and consistency. Values are the strings persisted in the
database and exposed over the API.
"""

from enum import Enum


class UserRole(str, Enum):
    """
    Platform roles.

    SUBSCRIBER is derived from the subscription status and is rewritten by the
    subscription lifecycle. ADMIN and COACH are assigned manually and are never
    touched by subscription changes.
    """

    USER = "USER"
    SUBSCRIBER = "SUBSCRIBER"
    COACH = "COACH"
    ADMIN = "ADMIN"


class BookingType(str, Enum):
    SINGLE = "SINGLE"
    PACKAGE = "PACKAGE"


class BookingStatus(str, Enum):
    """Lifecycle of a booked coach session."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
    NO_SHOW = "NO_SHOW"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class SubscriptionStatus(str, Enum):
    """Local mirror of the Stripe subscription state."""

    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    EXPIRED = "EXPIRED"


class PushSegment(str, Enum):
    """Audience selector for broadcast pushes."""

    ALL = "all"
    SUBSCRIBERS = "subscribers"
    NON_SUBSCRIBERS = "non_subscribers"


class DevicePlatform(str, Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


# Bookings in these statuses hold their slot
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)

# Bookings in these statuses can no longer be canceled
TERMINAL_BOOKING_STATUSES = (BookingStatus.CANCELED, BookingStatus.COMPLETED)

# Subscription statuses that grant subscriber access
ENTITLED_SUBSCRIPTION_STATUSES = (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE)

# Roles that subscription changes never overwrite
PROTECTED_ROLES = (UserRole.ADMIN, UserRole.COACH)
