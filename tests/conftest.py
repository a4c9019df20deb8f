import os
import uuid
from datetime import datetime, timedelta

import pytest

# Must be set before meditrack is imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import fakeredis
from fastapi.testclient import TestClient

from meditrack.main import app
from meditrack.core.clock import get_clock
from meditrack.core.database import Base, SessionLocal, engine, get_redis, init_db
from meditrack.core.security import UserRole, create_token_pair, get_password_hash
from meditrack.models.user import User

TEST_PASSWORD = "TestPassword123"
# bcrypt is slow; hash once for every seeded account
TEST_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)

# 08:30 UTC on the day the scenario appointments are booked for
FIXED_NOW = datetime(2025, 6, 10, 8, 30)


class FixedClock:
    """Settable clock injected in place of the wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(FIXED_NOW)


@pytest.fixture(scope="function")
def test_db():
    # Create tables
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make(role=UserRole.PATIENT, name="Pat Patient", email=None):
        user = User(
            email=email or f"{uuid.uuid4().hex[:10]}@meditrack.local",
            display_name=name,
            password_hash=TEST_PASSWORD_HASH,
            role=role,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def patient(make_user):
    return make_user(UserRole.PATIENT, "Pat Patient")


@pytest.fixture
def other_patient(make_user):
    return make_user(UserRole.PATIENT, "Olive Other")


@pytest.fixture
def doctor(make_user):
    return make_user(UserRole.DOCTOR, "Dana Doctor")


@pytest.fixture
def other_doctor(make_user):
    return make_user(UserRole.DOCTOR, "Drew Second")


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def client(test_db, clock, redis_client):
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_redis] = lambda: redis_client
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    """Bearer headers for a seeded user, without going through /login."""
    def _headers(user: User) -> dict:
        tokens = create_token_pair(user.id, user.email, user.role, jti=uuid.uuid4().hex)
        return {"Authorization": f"Bearer {tokens.access_token}"}

    return _headers
