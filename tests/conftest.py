"""Pytest configuration and fixtures."""

import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from src.api.dependencies import get_email_service
from src.config import Settings
from src.database import Base, create_db_engine, get_db, init_db
from src.main import app
from src.services.email import EmailService
from src.services.errors import EmailDeliveryError
from src.services.otp import OtpService
from src.services.session import SessionService


class RecordingEmailService(EmailService):
    """Email channel that keeps sent codes in memory instead of using SMTP."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.sent: list[tuple[str, str, str]] = []
        self.fail = False

    def send_otp(self, to_email, code, purpose):
        if self.fail:
            raise EmailDeliveryError("Connection refused")
        self.sent.append((to_email, code, purpose))

    def last_code(self, email: str) -> str:
        """Return the most recent code sent to an address."""
        codes = [code for to_email, code, _ in self.sent if to_email == email]
        assert codes, f"no code was sent to {email}"
        return codes[-1]


# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/story", "/story_test")
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_db_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    init_db(engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def session_factory():
    """Factory for extra sessions, e.g. to act as a concurrent request."""
    return TestingSessionLocal


@pytest.fixture
def settings():
    """Settings for service-level tests."""
    return Settings(environment="development", otp_delivery_mode="sync")


@pytest.fixture
def outbox(settings):
    """Recording email channel."""
    return RecordingEmailService(settings)


@pytest.fixture
def otp_service(db, settings, outbox):
    """OTP service wired to the test database and the recording channel."""
    return OtpService(db, settings, outbox, SessionService(db, settings))


@pytest.fixture(scope="function")
def client(db, outbox):
    """Create a test client with database and email overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: outbox
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def signed_in_user(client, outbox):
    """Sign up and verify a user through the API; the client keeps the session cookie."""
    email = "test@example.com"
    response = client.post("/api/v1/auth/signup", json={"email": email})
    assert response.status_code == 200

    response = client.post(
        "/api/v1/auth/verify", json={"email": email, "code": outbox.last_code(email)}
    )
    assert response.status_code == 200
    return response.json()["user"]
