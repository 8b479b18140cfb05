# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the InSkate Platform

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- IRepository: Interface defining required methods for all repositories
- RepositoryFactory: Factory for creating repository instances
- BookingRepository / BookingPackageRepository: bookings and package credits
- CoachRepository / CoachSlotRepository: coaches and slot reservation
- SubscriptionRepository / PlanRepository: subscription lifecycle storage
- UserRepository / DeviceTokenRepository: users, roles and push addressing
- PushNotificationRepository: push audit/schedule records

Usage:
    from app.repositories import RepositoryFactory

    repository = RepositoryFactory.create_booking_repository(db)
    bookings = repository.get_user_bookings(user_id)
"""

from .base_repository import BaseRepository, IRepository
from .booking_repository import BookingPackageRepository, BookingRepository
from .coach_repository import CoachRepository, CoachSlotRepository
from .factory import RepositoryFactory
from .push_notification_repository import PushNotificationRepository
from .subscription_repository import PlanRepository, SubscriptionRepository
from .user_repository import DeviceTokenRepository, UserRepository

__all__ = [
    "BaseRepository",
    "BookingPackageRepository",
    "BookingRepository",
    "CoachRepository",
    "CoachSlotRepository",
    "DeviceTokenRepository",
    "IRepository",
    "PlanRepository",
    "PushNotificationRepository",
    "RepositoryFactory",
    "SubscriptionRepository",
    "UserRepository",
]
