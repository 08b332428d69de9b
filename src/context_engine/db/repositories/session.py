"""
Saved session repository.

Every query here is scoped to a user id; there is no unscoped lookup.
"""

import uuid
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from context_engine.db.repositories.base import BaseRepository
from context_engine.models.db import (
    ConversationMessage,
    ProjectContextSnapshot,
    SavedSession,
    SessionFile,
)


def contains_pattern(fragment: str) -> str:
    """
    Build a LIKE pattern matching `fragment` anywhere, with wildcards escaped.

    Examples:
        >>> contains_pattern("bug_fix")
        '%bug\\\\_fix%'
    """
    escaped = (
        fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    )
    return f"%{escaped}%"


class SessionRepository(BaseRepository[SavedSession]):
    """Repository for SavedSession model."""

    def __init__(self, session: Session):
        super().__init__(SavedSession, session)

    def get_max_version(
        self, user_id: uuid.UUID, name: str, project_name: str
    ) -> int:
        """
        Highest stored version for a (user, name, project) key.

        Returns:
            The max version, or 0 when the key has never been saved
        """
        result = (
            self.session.query(func.max(SavedSession.version))
            .filter(
                SavedSession.user_id == user_id,
                SavedSession.name == name,
                SavedSession.project_name == project_name,
            )
            .scalar()
        )
        return result or 0

    def find_exact(
        self,
        user_id: uuid.UUID,
        name: str,
        project_name: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[SavedSession]:
        """
        Sessions whose name matches exactly, newest version first.

        Args:
            user_id: Owning user UUID
            name: Exact session name
            project_name: Optional exact project name filter
            limit: Maximum number of rows (all when None)

        Returns:
            Matching sessions ordered by version descending
        """
        query = self.session.query(SavedSession).filter(
            SavedSession.user_id == user_id, SavedSession.name == name
        )
        if project_name:
            query = query.filter(SavedSession.project_name == project_name)
        query = query.order_by(
            SavedSession.version.desc(), SavedSession.updated_at.desc()
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def search_by_name(
        self,
        user_id: uuid.UUID,
        name_fragment: str,
        project_fragment: Optional[str] = None,
        limit: int = 10,
    ) -> list[SavedSession]:
        """
        Case-insensitive substring search on session name.

        Args:
            user_id: Owning user UUID
            name_fragment: Substring of the session name
            project_fragment: Optional substring of the project name
            limit: Maximum number of results

        Returns:
            Matching sessions, most recently updated first
        """
        query = self.session.query(SavedSession).filter(
            SavedSession.user_id == user_id,
            SavedSession.name.ilike(contains_pattern(name_fragment), escape="\\"),
        )
        if project_fragment:
            query = query.filter(
                SavedSession.project_name.ilike(
                    contains_pattern(project_fragment), escape="\\"
                )
            )
        return (
            query.order_by(SavedSession.updated_at.desc(), SavedSession.version.desc())
            .limit(limit)
            .all()
        )

    def get_with_relations(
        self, id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[SavedSession]:
        """
        Get a session with files, messages, summaries and snapshot loaded.

        Args:
            id: Session UUID
            user_id: Owning user UUID

        Returns:
            Session or None if it does not exist for this user
        """
        return (
            self.session.query(SavedSession)
            .options(
                selectinload(SavedSession.files),
                selectinload(SavedSession.messages),
                selectinload(SavedSession.summaries),
                selectinload(SavedSession.snapshot).selectinload(
                    ProjectContextSnapshot.project_context
                ),
            )
            .filter(SavedSession.id == id, SavedSession.user_id == user_id)
            .first()
        )

    def file_paths_by_session(
        self, session_ids: Sequence[uuid.UUID]
    ) -> dict[uuid.UUID, list[str]]:
        """
        File paths for several sessions in one query.

        Returns:
            Mapping of session id to its sorted file paths
        """
        paths: dict[uuid.UUID, list[str]] = {id: [] for id in session_ids}
        if not session_ids:
            return paths
        rows = (
            self.session.query(SessionFile.session_id, SessionFile.path)
            .filter(SessionFile.session_id.in_(list(session_ids)))
            .order_by(SessionFile.path)
            .all()
        )
        for session_id, path in rows:
            paths[session_id].append(path)
        return paths

    def list_for_user(
        self,
        user_id: uuid.UUID,
        project_fragment: Optional[str] = None,
        file_path_fragment: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[SavedSession], int]:
        """
        Paginated sessions for a user with optional substring filters.

        Args:
            user_id: Owning user UUID
            project_fragment: Substring of the project name
            file_path_fragment: Substring of any attached file path
            limit: Page size
            offset: Number of results to skip

        Returns:
            Tuple of (page of sessions, total matching count)
        """
        query = self.session.query(SavedSession).filter(
            SavedSession.user_id == user_id
        )
        if project_fragment:
            query = query.filter(
                SavedSession.project_name.ilike(
                    contains_pattern(project_fragment), escape="\\"
                )
            )
        if file_path_fragment:
            query = query.filter(
                SavedSession.files.any(
                    SessionFile.path.ilike(
                        contains_pattern(file_path_fragment), escape="\\"
                    )
                )
            )

        total = query.count()
        sessions = (
            query.order_by(SavedSession.updated_at.desc(), SavedSession.version.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return sessions, total

    def get_latest_in_project(
        self, user_id: uuid.UUID, project_name: str
    ) -> Optional[SavedSession]:
        """Most recently created session of a project."""
        return (
            self.session.query(SavedSession)
            .options(selectinload(SavedSession.files))
            .filter(
                SavedSession.user_id == user_id,
                SavedSession.project_name == project_name,
            )
            .order_by(SavedSession.created_at.desc(), SavedSession.version.desc())
            .first()
        )

    def get_by_project_context(
        self,
        project_context_id: uuid.UUID,
        user_id: uuid.UUID,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[SavedSession], int]:
        """
        Sessions linked to any snapshot of a project context.

        Returns:
            Tuple of (page of sessions newest first, total count)
        """
        query = (
            self.session.query(SavedSession)
            .join(
                ProjectContextSnapshot,
                SavedSession.snapshot_id == ProjectContextSnapshot.id,
            )
            .filter(
                ProjectContextSnapshot.project_context_id == project_context_id,
                SavedSession.user_id == user_id,
            )
        )
        total = query.count()
        sessions = (
            query.order_by(SavedSession.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return sessions, total

    def touch_last_accessed(self, session: SavedSession, when: datetime) -> None:
        """Record a read of the session."""
        session.last_accessed = when
        self.session.flush()

    def stats_for_user(self, user_id: uuid.UUID) -> dict[str, int]:
        """
        Aggregate counts across a user's sessions.

        Returns:
            Dict with total_sessions, total_files, total_messages, unique_projects
        """
        total_sessions, unique_projects = (
            self.session.query(
                func.count(SavedSession.id),
                func.count(func.distinct(SavedSession.project_name)),
            )
            .filter(SavedSession.user_id == user_id)
            .one()
        )
        total_files = (
            self.session.query(func.count(SessionFile.id))
            .join(SavedSession, SessionFile.session_id == SavedSession.id)
            .filter(SavedSession.user_id == user_id)
            .scalar()
        )
        total_messages = (
            self.session.query(func.count(ConversationMessage.id))
            .join(SavedSession, ConversationMessage.session_id == SavedSession.id)
            .filter(SavedSession.user_id == user_id)
            .scalar()
        )
        return {
            "total_sessions": total_sessions or 0,
            "total_files": total_files or 0,
            "total_messages": total_messages or 0,
            "unique_projects": unique_projects or 0,
        }
