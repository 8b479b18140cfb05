# backend/app/repositories/factory.py
"""
Repository Factory for the InSkate Platform

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .booking_repository import BookingPackageRepository, BookingRepository
from .coach_repository import CoachRepository, CoachSlotRepository
from .push_notification_repository import PushNotificationRepository
from .subscription_repository import PlanRepository, SubscriptionRepository
from .user_repository import DeviceTokenRepository, UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        return BookingRepository(db)

    @staticmethod
    def create_booking_package_repository(db: Session) -> BookingPackageRepository:
        return BookingPackageRepository(db)

    @staticmethod
    def create_coach_repository(db: Session) -> CoachRepository:
        return CoachRepository(db)

    @staticmethod
    def create_coach_slot_repository(db: Session) -> CoachSlotRepository:
        return CoachSlotRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> UserRepository:
        return UserRepository(db)

    @staticmethod
    def create_device_token_repository(db: Session) -> DeviceTokenRepository:
        return DeviceTokenRepository(db)

    @staticmethod
    def create_plan_repository(db: Session) -> PlanRepository:
        return PlanRepository(db)

    @staticmethod
    def create_subscription_repository(db: Session) -> SubscriptionRepository:
        return SubscriptionRepository(db)

    @staticmethod
    def create_push_notification_repository(db: Session) -> PushNotificationRepository:
        return PushNotificationRepository(db)
