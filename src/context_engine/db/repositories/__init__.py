"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from context_engine.db.repositories.base import BaseRepository
from context_engine.db.repositories.project_context import (
    ProjectContextRepository,
    SnapshotRepository,
)
from context_engine.db.repositories.session import SessionRepository
from context_engine.db.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "ProjectContextRepository",
    "SessionRepository",
    "SnapshotRepository",
    "UserRepository",
]
