"""
Resume resolution.

Locates a saved session by name through a three-step ladder:

1. Exact and singular: one row matches the exact name (or a project filter
   was given). The newest version is hydrated with files, conversation,
   metadata, project context and summaries.
2. Exact and ambiguous: several rows share the exact name and no project
   filter was given. Candidates are returned without file or conversation
   bodies.
3. No exact match: a case-insensitive substring search on the name, newest
   first and capped, returns candidates (possibly none).

Every query is scoped to the requesting user.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Union

from sqlalchemy.orm import Session

from context_engine.config import settings
from context_engine.db.repositories.session import SessionRepository
from context_engine.exceptions import SessionNotFoundError
from context_engine.models.db import ProjectContextSnapshot, SavedSession
from context_engine.schemas import (
    ConversationTurn,
    FullSession,
    ResumeMatches,
    ResumeSessionRequest,
    SessionCandidate,
    SessionFileContent,
    SessionSummaryResponse,
)

logger = logging.getLogger(__name__)

ResumeOutcome = Union[FullSession, ResumeMatches]


def _utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def project_context_summary(
    snapshot: Optional[ProjectContextSnapshot],
) -> Optional[dict[str, Any]]:
    """Summarize the project context a session was saved against."""
    if snapshot is None:
        return None
    context = snapshot.project_context
    return {
        "id": str(context.id),
        "project_name": context.project_name,
        "project_type": context.project_type,
        "programming_languages": list(context.programming_languages or []),
        "build_system": context.build_system,
        "test_framework": context.test_framework,
        "tech_stack": context.tech_stack or {},
        "snapshot": {
            "id": str(snapshot.id),
            "version": snapshot.snapshot_version,
            "reason": snapshot.snapshot_reason,
            "file_tree": snapshot.file_tree or {},
            "dependencies": snapshot.dependencies or {},
            "estimated_complexity": snapshot.estimated_complexity,
        },
    }


class ResumeResolver:
    """Exact / ambiguous / fuzzy resume ladder."""

    def __init__(self, session: Session, fuzzy_limit: Optional[int] = None):
        self.sessions = SessionRepository(session)
        self.fuzzy_limit = fuzzy_limit or settings.fuzzy_match_limit

    def resolve(
        self, request: ResumeSessionRequest, user_id: uuid.UUID
    ) -> ResumeOutcome:
        """
        Resolve a resume request for one user.

        Args:
            request: Session name, optional project filter and file path
            user_id: Requesting user UUID

        Returns:
            FullSession on an unambiguous exact match, otherwise ResumeMatches
        """
        # Two rows are enough to call a match ambiguous
        exact = self.sessions.find_exact(
            user_id,
            request.session_name,
            request.project_name,
            limit=max(self.fuzzy_limit, 2),
        )

        if not exact:
            return self._fuzzy(request, user_id)

        if len(exact) > 1 and not request.project_name:
            logger.info(
                f"Ambiguous resume for {request.session_name!r}: "
                f"{len(exact)} exact matches"
            )
            return ResumeMatches(
                outcome="ambiguous", matches=self._candidates(exact)
            )

        return self.hydrate(exact[0].id, user_id, request.file_path)

    def hydrate(
        self,
        session_id: uuid.UUID,
        user_id: uuid.UUID,
        file_path: Optional[str] = None,
    ) -> FullSession:
        """
        Load a session with all of its content and record the access.

        Args:
            session_id: Session UUID
            user_id: Owning user UUID
            file_path: Optional exact path; only that file is returned

        Returns:
            FullSession

        Raises:
            SessionNotFoundError: If the session does not belong to the user
        """
        saved = self.sessions.get_with_relations(session_id, user_id)
        if saved is None:
            raise SessionNotFoundError(str(session_id))

        files = [f for f in saved.files if file_path is None or f.path == file_path]
        paths_by_id = {f.id: f.path for f in saved.files}

        metadata = dict(saved.extra_data or {})
        metadata["project_context"] = project_context_summary(saved.snapshot)

        self.sessions.touch_last_accessed(saved, _utc_now())

        logger.info(
            f"Resumed session {saved.name!r} v{saved.version} "
            f"({len(files)} files, {len(saved.messages)} messages)"
        )
        return FullSession(
            session_id=saved.id,
            session_name=saved.name,
            project_name=saved.project_name,
            version=saved.version,
            files=[SessionFileContent(path=f.path, content=f.content) for f in files],
            conversation=[
                ConversationTurn(role=m.role, content=m.content)
                for m in saved.messages
            ],
            metadata=metadata,
            summaries=[
                SessionSummaryResponse(
                    file_path=paths_by_id.get(s.file_id, "unknown"),
                    summary=s.summary,
                    summary_type=s.summary_type,
                    previous_version=s.previous_version,
                )
                for s in saved.summaries
            ],
            created_at=saved.created_at,
            updated_at=saved.updated_at,
        )

    def _fuzzy(
        self, request: ResumeSessionRequest, user_id: uuid.UUID
    ) -> ResumeMatches:
        rows = self.sessions.search_by_name(
            user_id,
            request.session_name,
            project_fragment=request.project_name,
            limit=self.fuzzy_limit,
        )
        logger.info(
            f"Fuzzy resume for {request.session_name!r}: {len(rows)} candidate(s)"
        )
        return ResumeMatches(outcome="fuzzy", matches=self._candidates(rows))

    def _candidates(self, rows: list[SavedSession]) -> list[SessionCandidate]:
        paths = self.sessions.file_paths_by_session([row.id for row in rows])
        return [
            SessionCandidate(
                session_id=row.id,
                session_name=row.name,
                project_name=row.project_name,
                version=row.version,
                files=paths.get(row.id, []),
                created_at=row.created_at,
                metadata=dict(row.extra_data or {}),
            )
            for row in rows
        ]
