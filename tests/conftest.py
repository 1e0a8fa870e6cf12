"""Shared test fixtures for Gemini Gateway tests."""

import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId

from common.auth.jwt_auth import JWTAuth
from common.auth.password_hasher import PasswordHasher
from gateway.auth.services.auth_service import AuthService
from gateway.auth.services.device_detector import DeviceDetector
from gateway.auth.services.session_policy import SessionPolicy
from gateway.auth.services.session_store import SessionStore
from gateway.user.services.user_repository import UserRepository
from tests.fakes import FakeDatabase, FrozenClock

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"

IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@pytest.fixture
def sample_user_id():
    return str(ObjectId())


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def mock_collection():
    collection = AsyncMock()
    # Motor's find() returns a cursor synchronously (not a coroutine),
    # so use MagicMock for it. Async methods like find_one, insert_one,
    # count_documents etc. stay as AsyncMock.
    collection.find = MagicMock()
    return collection


@pytest.fixture
def mock_db(mock_collection):
    db = MagicMock()
    db.__getitem__ = MagicMock(return_value=mock_collection)
    return db


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def jwt_auth(clock):
    return JWTAuth(secret=TEST_SECRET, expires_in="7d", clock=clock)


@pytest.fixture
def password_hasher():
    # Minimum bcrypt cost keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def session_store(fake_db, jwt_auth, clock):
    return SessionStore(fake_db, jwt_auth, DeviceDetector(), clock=clock)


@pytest.fixture
def session_policy(session_store):
    return SessionPolicy(session_store, max_sessions=5)


@pytest.fixture
def user_repository(fake_db, clock):
    return UserRepository(fake_db, clock=clock)


@pytest.fixture
def auth_service(user_repository, jwt_auth, password_hasher, session_policy, clock):
    return AuthService(
        users=user_repository,
        jwt_auth=jwt_auth,
        password_hasher=password_hasher,
        session_policy=session_policy,
        clock=clock,
    )
