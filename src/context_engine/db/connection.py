"""
Database connection management for Context Engine.

Provides database session management, connection handling, and transaction support.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import JSON, create_engine, event, text
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from context_engine.config import settings
from context_engine.models.db import Base

logger = logging.getLogger(__name__)


# Replace JSONB with JSON for SQLite (development and tests)
@event.listens_for(Base.metadata, "before_create")
def _set_json_type(target, connection, **kw):  # pragma: no cover - compat hook
    if connection.dialect.name == "postgresql":
        return
    for table in target.tables.values():
        for column in table.columns:
            if isinstance(column.type, postgresql.JSONB):
                column.type = JSON()


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite gets a single shared connection-friendly setup; PostgreSQL gets a
    bounded pool sized from settings.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=False,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )

    # Total connections per process = pool_size + max_overflow
    return create_engine(
        database_url,
        echo=False,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_pre_ping=True,  # Verify connections before using
        pool_timeout=settings.db_pool_timeout,  # Wait for connection during bursts
        pool_recycle=settings.db_pool_recycle,  # Recycle connections to prevent stale
    )


# Create engine instance (singleton pattern)
engine = create_db_engine(settings.database_url)

# Create session factory for API requests (uses pooled connections)
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI to get database sessions with automatic cleanup.

    Yields:
        Session: A SQLAlchemy session

    Example (FastAPI):
        >>> @router.get("/sessions")
        >>> def list_sessions(db: Session = Depends(get_db)):
        >>>     return SessionService(db).list_sessions(...)
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup.

    Yields:
        Session: A SQLAlchemy session

    Example:
        >>> with db_session() as db:
        >>>     user = UserRepository(db).get_by_username("demo-user")
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Engine | None = None) -> None:
    """
    Create all tables.

    Prefer Alembic migrations in production: `alembic upgrade head`.
    """
    Base.metadata.create_all(bind=bind or engine)


def check_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        bool: True if connection successful, False otherwise
    """
    try:
        with db_session() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
