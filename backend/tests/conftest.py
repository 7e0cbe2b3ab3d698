"""Shared test fixtures."""

import uuid
from datetime import UTC, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from khozo.audit.models import AuditLog
from khozo.auth.models import User
from khozo.database import Base
from khozo.discovery.models import EngagementEvent, ViewHistory
from khozo.integrations.cache import NullCacheService
from khozo.lifecycle.models import StatusHistoryEntry
from khozo.notifications.models import (
    DeliveryToken,
    NotificationDailyStats,
    NotificationHistory,
    NotificationJob,
)
from khozo.opportunities.models import Opportunity, OpportunityCategory, OpportunityStatus

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [
    AuditLog,
    EngagementEvent,
    ViewHistory,
    StatusHistoryEntry,
    DeliveryToken,
    NotificationDailyStats,
    NotificationHistory,
    NotificationJob,
]


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing.

    Note: SQLite doesn't support all PostgreSQL features (JSONB, UUID),
    but works for basic service logic testing.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_user(db_session):
    """Create a test user."""
    user = User(
        id=uuid.uuid4(),
        email="test@example.com",
        password_hash="$2b$12$fakehash",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def other_user(db_session):
    user = User(
        id=uuid.uuid4(),
        email="other@example.com",
        password_hash="$2b$12$fakehash",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def make_opportunity(db_session, test_user):
    """Factory for opportunities owned by test_user unless told otherwise."""

    def _make(**overrides):
        fields = {
            "id": uuid.uuid4(),
            "user_id": test_user.id,
            "title": "SSC CGL Combined Graduate Level Examination 2025",
            "category": OpportunityCategory.EXAM,
            "program_type": "central",
            "tags": ["ssc", "graduate", "central govt"],
            "eligibility": {"min_age": 18, "max_age": 32, "education": "graduate"},
            "important_dates": {},
            "deadline": datetime(2025, 12, 1, tzinfo=UTC),
            "status": OpportunityStatus.DISCOVERED,
            "notification_preferences": {},
        }
        fields.update(overrides)
        opportunity = Opportunity(**fields)
        db_session.add(opportunity)
        db_session.commit()
        return opportunity

    return _make


@pytest.fixture
def test_opportunity(make_opportunity):
    """A discovered exam with a 2025-12-01 deadline."""
    return make_opportunity()


class FakePushGateway:
    """Records every send; answers from a token -> (ok, error) map."""

    def __init__(self, results: dict | None = None, default: tuple[bool, str] = (True, "")):
        self.results = results or {}
        self.default = default
        self.calls: list[dict] = []

    def send(self, token, title, body, data=None):
        self.calls.append({"token": token, "title": title, "body": body, "data": data})
        outcome = self.results.get(token, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def fake_gateway():
    return FakePushGateway()


@pytest.fixture
def null_cache():
    """No-op cache for testing."""
    return NullCacheService()
