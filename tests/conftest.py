import os

# Must be set before the app (and its Settings) is imported
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("JWT_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.database import Base
from models.users import User
from utils.deps import get_db, get_notifier
from tests.helpers import RecordingNotifier, create_user

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def client(session: Session, notifier: RecordingNotifier):
    """
    Yields an HTTP client that talks to the app with the test database and
    the recording notifier.
    """
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def verified_user(session: Session) -> User:
    return create_user(session, email="verified@example.com", full_name="Verified User")


@pytest.fixture
def unverified_user(session: Session) -> User:
    return create_user(session, email="unverified@example.com", full_name="Unverified User", is_verified=False)


@pytest.fixture
def google_user(session: Session) -> User:
    return create_user(
        session,
        email="google@example.com",
        full_name="Google User",
        hashed_password=None,
        login_type="google",
        google_id="google-123"
    )
