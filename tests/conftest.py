"""
Pytest configuration and shared fixtures for all tests.

Every test gets a fresh in-memory SQLite database. Settings are read at
import time, so the environment is prepared before the app is imported.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ["JWT_SECRET"] = "test-jwt-secret-that-is-at-least-32-bytes-long"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["REQUIRE_EMAIL_VERIFICATION"] = "false"
os.environ["RATE_LIMIT_PER_MINUTE"] = "10000"
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from apps.api.main import app
from auth.auth_manager import auth_manager
from auth.cache_manager import cache_manager
from auth.models import User, UserStatus, ensure_default_roles, get_or_create_role
from auth.passwords import hash_secret
from auth.session_manager import session_manager
from core.database import DatabaseManager

DEFAULT_PASSWORD = "correct-horse-battery"


@pytest.fixture
def engine():
    """In-memory database shared by every connection of the test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    DatabaseManager.reset()
    DatabaseManager.initialize(engine=engine)
    cache_manager.clear()

    yield engine

    DatabaseManager.drop_tables()
    DatabaseManager.reset()


@pytest.fixture
def db(engine):
    """Session for arranging data and asserting on it outside requests."""
    session = DatabaseManager.session_factory()()
    ensure_default_roles(session)
    session.commit()

    yield session

    session.close()


@pytest.fixture
def client(db):
    """FastAPI test client bound to the per-test database."""
    return TestClient(app)


# ==================== FACTORIES ====================

@pytest.fixture
def make_user(db):
    """Create a user with the given roles; returns the committed User."""
    counter = {"n": 0}

    def _make_user(roles=("user",), email=None, name=None, password=DEFAULT_PASSWORD,
                   verified=True, status=UserStatus.ACTIVE):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            name=name or f"User {counter['n']}",
            password_hash=hash_secret(password),
            is_email_verified=verified,
            status=status,
            backup_codes=[],
        )
        user.roles = [get_or_create_role(db, role) for role in roles]
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def auth_headers(db):
    """Open a session for the user and return a bearer header for it."""

    def _auth_headers(user):
        session, _ = session_manager.create_session(db, user, ip_address="testclient")
        token = auth_manager.create_access_token(user, session.session_id)
        db.commit()
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def user(make_user):
    return make_user(roles=("user",), email="customer@example.com", name="Customer")


@pytest.fixture
def staff(make_user):
    return make_user(roles=("staff",), email="staff@example.com", name="Staff Member")


@pytest.fixture
def admin(make_user):
    return make_user(roles=("admin",), email="admin@example.com", name="Admin")


@pytest.fixture
def user_headers(user, auth_headers):
    return auth_headers(user)


@pytest.fixture
def staff_headers(staff, auth_headers):
    return auth_headers(staff)


@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin)
