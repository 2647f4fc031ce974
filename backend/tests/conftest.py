"""Shared pytest fixtures for test suite"""
import pytest
import sys
from pathlib import Path
from typing import Generator
from unittest.mock import patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
import fakeredis

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from app.main import app
from app.db.session import get_db
from app.models import Base
from app.models.user import User
from app.services.auth_service import create_user
from app.db import redis as redis_module


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

TEST_PASSWORD = "TestPassword123!"


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    Base.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def mock_redis():
    """Replace the Redis client with fakeredis for sessions, CSRF tokens and rate limits"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)

    with patch.object(redis_module, '_client', fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database and mocked Redis"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db

    try:
        # Startup would otherwise reach for the configured Postgres/Redis
        with patch('app.main.init_db'):
            with patch('app.main.initialize_otel', return_value=False):
                with TestClient(app) as test_client:
                    yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def test_user(db_session: Session) -> User:
    """Create a test user"""
    return create_user(email="reader@example.com", password=TEST_PASSWORD, db=db_session)


@pytest.fixture(scope="function")
def test_user_2(db_session: Session) -> User:
    """Create a second test user for ownership tests"""
    return create_user(email="reader2@example.com", password=TEST_PASSWORD, db=db_session)


@pytest.fixture(scope="function")
def authenticated_client(client: TestClient, test_user: User) -> TestClient:
    """Client with authenticated user session and CSRF token header"""
    login_response = client.post(
        "/api/auth/login",
        json={"email": test_user.email, "password": TEST_PASSWORD}
    )
    assert login_response.status_code == 200

    csrf_response = client.get("/api/auth/csrf")
    assert csrf_response.status_code == 200
    client.headers.update({"X-CSRF-Token": csrf_response.json()["csrf_token"]})

    return client
