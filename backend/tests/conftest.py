"""
Pytest fixtures for LinkFolio tests.
Provides test database, mock Redis, and FastAPI test client.
"""

import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["GEOIP_ENABLED"] = "false"
os.environ["CLEANUP_ENABLED"] = "false"
os.environ["COOKIE_SECURE"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["BASE_URL"] = "http://testserver"
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret"

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fastapi.testclient import TestClient


class MockRedisService:
    """Mock Redis service for testing."""

    _rate_limits = {}

    @classmethod
    def reset(cls):
        cls._rate_limits = {}

    @staticmethod
    def check_rate_limit(key: str, limit=None) -> tuple:
        count = MockRedisService._rate_limits.get(key, 0)
        limit = limit or 30
        if count >= limit:
            return False, 0
        MockRedisService._rate_limits[key] = count + 1
        return True, limit - count - 1

    @staticmethod
    def health_check() -> bool:
        return True


@pytest.fixture(autouse=True)
def mock_redis():
    """Automatically mock Redis for all tests."""
    MockRedisService.reset()
    with patch("linkfolio.api.auth.RedisService", MockRedisService):
        with patch("linkfolio.api.links.RedisService", MockRedisService):
            with patch("linkfolio.main.RedisService", MockRedisService):
                yield MockRedisService


@pytest.fixture(scope="function")
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    from linkfolio.database import Base

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield TestingSessionLocal

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(test_db, session_factory, mock_redis):
    """Create a FastAPI test client with mocked dependencies."""
    from linkfolio.main import app
    from linkfolio.database import get_db, get_session_factory

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


def signup(client, name="Test User", email="user@example.com", password="password123"):
    response = client.post("/api/auth/signup", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return response.json()["user"]


def login(client, email="user@example.com", password="password123"):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["user"]


@pytest.fixture
def user(client):
    """A signed-up user whose session cookies are loaded into the client."""
    signup(client)
    return login(client)


@pytest.fixture
def other_user(client):
    """Credentials of a second account (not signed in)."""
    signup(client, name="Other User", email="other@example.com")
    return {"email": "other@example.com", "password": "password123"}


@pytest.fixture
def login_as(client):
    """Switch the client's session to another account."""
    def _login(email, password="password123"):
        return login(client, email, password)
    return _login


@pytest.fixture
def admin(client, test_db):
    """An admin account signed in on the client."""
    from linkfolio.models import ROLE_ADMIN
    from linkfolio.services.users import UserService

    UserService.signup(test_db, "Admin", "admin@example.com", "adminpass123", role=ROLE_ADMIN)
    return login(client, "admin@example.com", "adminpass123")


@pytest.fixture
def sample_url():
    """Sample URL for testing."""
    return "https://example.com/some/long/path?query=value"


@pytest.fixture
def create_link(client, sample_url):
    """Factory creating a link as the signed-in user."""
    def _create(**fields):
        payload = {"redirectURL": sample_url}
        payload.update(fields)
        response = client.post("/api/url", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _create


@pytest.fixture
def create_folder(client):
    """Factory creating a folder as the signed-in user."""
    def _create(name="Marketing", description=None):
        payload = {"name": name}
        if description is not None:
            payload["description"] = description
        response = client.post("/api/folder", json=payload)
        assert response.status_code == 201, response.text
        return response.json()
    return _create
