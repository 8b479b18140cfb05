# backend/tests/conftest.py
"""
Pytest configuration.

Every test gets its own SQLite database file so tests never share state and
threads in concurrency tests can open their own sessions against it. The push
transport, the job deduplicator and the Stripe gateway are replaced with
in-process fakes.
"""

import os
import sys

# CRITICAL: Set testing mode BEFORE any app imports!
os.environ["is_testing"] = "true"

# Add the backend directory to Python path so imports work
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from app.core.config import settings

settings.is_testing = True

from datetime import timedelta
from typing import Dict, List, Optional, Sequence
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker

from app.api.dependencies.database import get_db
from app.auth import create_access_token
from app.core.enums import UserRole
from app.core.job_dedup import InMemoryJobDeduplicator, set_job_deduplicator
from app.core.timezone_utils import utc_now
from app.database import Base, create_app_engine
from app.main import app
from app.models.booking import BookingPackage
from app.models.coach import Coach, CoachSlot
from app.models.subscription import Plan
from app.models.user import DeviceToken, User
from app.services.push_sender import PushResult, set_push_sender
from app.services.stripe_service import set_stripe_service


class RecordingPushSender:
    """Push transport that records every multicast; tokens in ``invalid`` fail."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, object]] = []
        self.invalid: set = set()
        self.raise_error: Optional[Exception] = None

    def send_multicast(
        self,
        tokens: Sequence[str],
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> PushResult:
        if self.raise_error is not None:
            raise self.raise_error
        self.calls.append({"tokens": list(tokens), "title": title, "body": body, "data": data})
        invalid = [token for token in tokens if token in self.invalid]
        return PushResult(
            success_count=len(tokens) - len(invalid),
            failure_count=len(invalid),
            invalid_tokens=invalid,
        )

    @property
    def sent_tokens(self) -> List[str]:
        return [token for call in self.calls for token in call["tokens"]]


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def test_engine(tmp_path):
    engine = create_app_engine(f"sqlite:///{tmp_path / 'inskate_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(
        autocommit=False, autoflush=False, bind=test_engine, expire_on_commit=False
    )


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def client(db):
    """Create a test client that shares the test session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


# ============================================================================
# Process-wide fakes
# ============================================================================


@pytest.fixture(autouse=True)
def push_sender():
    sender = RecordingPushSender()
    set_push_sender(sender)
    yield sender
    set_push_sender(None)


@pytest.fixture(autouse=True)
def job_deduplicator():
    deduplicator = InMemoryJobDeduplicator()
    set_job_deduplicator(deduplicator)
    yield deduplicator
    set_job_deduplicator(None)


@pytest.fixture(autouse=True)
def stripe_mock():
    mock = MagicMock()
    set_stripe_service(mock)
    yield mock
    set_stripe_service(None)


# ============================================================================
# Entities
# ============================================================================


def _make_user(db: Session, phone: str, role: UserRole = UserRole.USER, name: str = None) -> User:
    user = User(phone=phone, name=name, role=role.value)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def test_user(db: Session) -> User:
    return _make_user(db, "+79990000001", name="Anna Skater")


@pytest.fixture
def other_user(db: Session) -> User:
    return _make_user(db, "+79990000002", name="Boris Skater")


@pytest.fixture
def admin_user(db: Session) -> User:
    return _make_user(db, "+79990000099", role=UserRole.ADMIN, name="Admin")


@pytest.fixture
def coach_user(db: Session) -> User:
    return _make_user(db, "+79990000050", role=UserRole.COACH, name="Coach Account")


@pytest.fixture
def test_coach(db: Session) -> Coach:
    coach = Coach(name="Irina Rodnina", level="Master of Sport", active=True)
    db.add(coach)
    db.commit()
    return coach


@pytest.fixture
def make_slot(db: Session, test_coach: Coach):
    def _make(hours_from_now: float = 48, coach: Coach = None, available: bool = True):
        start_at = utc_now() + timedelta(hours=hours_from_now)
        slot = CoachSlot(
            coach_id=(coach or test_coach).id,
            start_at=start_at,
            end_at=start_at + timedelta(hours=1),
            is_available=available,
        )
        db.add(slot)
        db.commit()
        return slot

    return _make


@pytest.fixture
def future_slot(make_slot) -> CoachSlot:
    return make_slot()


@pytest.fixture
def make_package(db: Session, test_coach: Coach):
    def _make(
        user: User,
        remaining: int = 5,
        total: int = 10,
        expires_in_days: float = 30,
        coach: Coach = None,
    ) -> BookingPackage:
        package = BookingPackage(
            user_id=user.id,
            coach_id=(coach or test_coach).id,
            total=total,
            remaining=remaining,
            expires_at=utc_now() + timedelta(days=expires_in_days),
        )
        db.add(package)
        db.commit()
        return package

    return _make


@pytest.fixture
def test_plan(db: Session) -> Plan:
    plan = Plan(
        name="Monthly",
        price=99000,
        currency="RUB",
        interval="month",
        trial_days=0,
        stripe_price_id="price_monthly",
        active=True,
    )
    db.add(plan)
    db.commit()
    return plan


@pytest.fixture
def trial_plan(db: Session) -> Plan:
    plan = Plan(
        name="Monthly with trial",
        price=99000,
        currency="RUB",
        interval="month",
        trial_days=7,
        stripe_price_id="price_trial",
        active=True,
    )
    db.add(plan)
    db.commit()
    return plan


@pytest.fixture
def add_device_token(db: Session):
    def _add(user: User, token: str, platform: str = "android") -> DeviceToken:
        device_token = DeviceToken(user_id=user.id, token=token, platform=platform)
        db.add(device_token)
        db.commit()
        return device_token

    return _add


# ============================================================================
# Auth headers
# ============================================================================


def auth_headers_for(user: User) -> Dict[str, str]:
    token = create_access_token(user.id, user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user: User) -> Dict[str, str]:
    return auth_headers_for(test_user)


@pytest.fixture
def other_auth_headers(other_user: User) -> Dict[str, str]:
    return auth_headers_for(other_user)


@pytest.fixture
def admin_headers(admin_user: User) -> Dict[str, str]:
    return auth_headers_for(admin_user)


@pytest.fixture
def make_auth_headers():
    return auth_headers_for
