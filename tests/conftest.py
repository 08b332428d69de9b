"""
Pytest configuration and fixtures for Context Engine tests.

This module provides shared fixtures for testing the repositories, the engine
services, the API and the CLI against an in-memory SQLite database.
"""

import os

# Configure before the package reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE_ENABLED", "false")

import uuid
from typing import Any, Callable, Generator, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import context_engine.db.connection  # noqa: F401  (registers the JSONB -> JSON hook)
from context_engine.models.db import Base, User, UserStatus
from context_engine.schemas import SaveSessionRequest
from context_engine.services.session_service import SessionService


@pytest.fixture(scope="function")
def test_engine():
    """
    Create a fresh in-memory SQLite engine for a test.

    The services commit and roll back on their own, so each test gets its own
    database instead of an outer transaction.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},  # TestClient runs in a thread
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session bound to the test engine."""
    session = sessionmaker(bind=test_engine, autoflush=False)()
    yield session
    session.close()


def _make_user(session: Session, username: str, status: str) -> User:
    user = User(id=uuid.uuid4(), username=username, status=status)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def sample_user(db_session: Session) -> User:
    """Create an active user for testing."""
    return _make_user(db_session, "alice", UserStatus.ACTIVE.value)


@pytest.fixture
def other_user(db_session: Session) -> User:
    """Create a second active user for isolation tests."""
    return _make_user(db_session, "bob", UserStatus.ACTIVE.value)


@pytest.fixture
def inactive_user(db_session: Session) -> User:
    """Create an inactive user for testing."""
    return _make_user(db_session, "carol", UserStatus.INACTIVE.value)


@pytest.fixture
def service(db_session: Session) -> SessionService:
    """Session service bound to the test session."""
    return SessionService(db_session)


@pytest.fixture
def make_request() -> Callable[..., SaveSessionRequest]:
    """Factory for save requests with sensible defaults."""

    def _make(
        session_name: str = "bug-fix",
        project_name: str = "proj-a",
        files: Optional[list[dict[str, str]]] = None,
        conversation: Optional[list[dict[str, str]]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SaveSessionRequest:
        if files is None:
            files = [{"path": "src/main.py", "content": "print('hello')\n"}]
        return SaveSessionRequest(
            session_name=session_name,
            project_name=project_name,
            files=files,
            conversation=conversation or [],
            metadata=metadata or {},
        )

    return _make


@pytest.fixture
def api_client(db_session: Session):
    """Create a test client for FastAPI with database dependency override."""
    from fastapi.testclient import TestClient

    from context_engine.api.app import app
    from context_engine.db.connection import get_db

    # Override the get_db dependency to use test database
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app)
    yield client

    # Clean up
    app.dependency_overrides.clear()
