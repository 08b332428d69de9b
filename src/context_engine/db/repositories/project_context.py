"""
Project context and snapshot repositories.
"""

import uuid
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from context_engine.db.repositories.base import BaseRepository
from context_engine.models.db import ProjectContext, ProjectContextSnapshot


class ProjectContextRepository(BaseRepository[ProjectContext]):
    """Repository for ProjectContext model."""

    def __init__(self, session: Session):
        super().__init__(ProjectContext, session)

    def get_by_user_and_name(
        self, user_id: uuid.UUID, project_name: str
    ) -> Optional[ProjectContext]:
        """
        Get the context for (user, project) regardless of its active flag.

        Args:
            user_id: Owning user UUID
            project_name: Exact project name

        Returns:
            ProjectContext instance or None
        """
        return (
            self.session.query(ProjectContext)
            .filter(
                ProjectContext.user_id == user_id,
                ProjectContext.project_name == project_name,
            )
            .first()
        )

    def get_active(
        self, user_id: uuid.UUID, project_name: str
    ) -> Optional[ProjectContext]:
        """Get the active context for (user, project)."""
        return (
            self.session.query(ProjectContext)
            .filter(
                ProjectContext.user_id == user_id,
                ProjectContext.project_name == project_name,
                ProjectContext.is_active.is_(True),
            )
            .first()
        )

    def list_for_user(
        self, user_id: uuid.UUID, limit: Optional[int] = None, offset: int = 0
    ) -> List[ProjectContext]:
        """
        Get active contexts for a user, most recently modified first.

        Args:
            user_id: Owning user UUID
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of project contexts
        """
        query = (
            self.session.query(ProjectContext)
            .filter(
                ProjectContext.user_id == user_id,
                ProjectContext.is_active.is_(True),
            )
            .order_by(
                ProjectContext.last_modified_at.desc(), ProjectContext.project_name
            )
            .offset(offset)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def count_for_user(self, user_id: uuid.UUID) -> int:
        """Count active contexts for a user."""
        return (
            self.session.query(ProjectContext)
            .filter(
                ProjectContext.user_id == user_id,
                ProjectContext.is_active.is_(True),
            )
            .count()
        )


class SnapshotRepository(BaseRepository[ProjectContextSnapshot]):
    """Repository for ProjectContextSnapshot model."""

    def __init__(self, session: Session):
        super().__init__(ProjectContextSnapshot, session)

    def get_max_version(self, project_context_id: uuid.UUID) -> int:
        """
        Highest snapshot version under a context.

        Returns:
            The max version, or 0 when the context has no snapshots
        """
        result = (
            self.session.query(func.max(ProjectContextSnapshot.snapshot_version))
            .filter(ProjectContextSnapshot.project_context_id == project_context_id)
            .scalar()
        )
        return result or 0

    def count_for_context(self, project_context_id: uuid.UUID) -> int:
        """Count snapshots under a context."""
        return (
            self.session.query(ProjectContextSnapshot)
            .filter(ProjectContextSnapshot.project_context_id == project_context_id)
            .count()
        )

    def get_latest(
        self, project_context_id: uuid.UUID
    ) -> Optional[ProjectContextSnapshot]:
        """Get the snapshot with the highest version under a context."""
        return (
            self.session.query(ProjectContextSnapshot)
            .filter(ProjectContextSnapshot.project_context_id == project_context_id)
            .order_by(ProjectContextSnapshot.snapshot_version.desc())
            .first()
        )
