"""
Session store service for Context Engine.

The transactional boundary around the engine. A save runs tech stack
detection, project context resolution, snapshot materialization, version
assignment and every row insert inside one database transaction, retrying the
whole transaction when a concurrent writer claims the same version. Resume,
list and stats are scoped reads for one user.
"""

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Union

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from context_engine.config import settings
from context_engine.db.repositories.project_context import (
    ProjectContextRepository,
    SnapshotRepository,
)
from context_engine.db.repositories.session import SessionRepository
from context_engine.db.repositories.user import UserRepository
from context_engine.detection.rules import EXTENSION_LANGUAGES
from context_engine.detection.tech_stack import TechStackDetector
from context_engine.exceptions import (
    AuthenticationRequiredError,
    FilePathConflictError,
    ProjectContextNotFoundError,
    StoreUnavailableError,
    VersionConflictError,
)
from context_engine.models.db import (
    ConversationMessage,
    SavedSession,
    SessionFile,
    Summary,
    SummaryType,
)
from context_engine.models.parsed import FileEntry, TechStackFacts
from context_engine.schemas import (
    ListSessionsRequest,
    ProjectContextList,
    ProjectContextListItem,
    ProjectSessionsResult,
    ResumeSessionRequest,
    SaveSessionRequest,
    SaveSessionResult,
    SessionListItem,
    SessionListResult,
    SessionStats,
    SnapshotResponse,
)
from context_engine.services.project_context import ProjectContextResolver
from context_engine.services.resume import ResumeOutcome, ResumeResolver
from context_engine.services.snapshots import SnapshotMaterializer
from context_engine.services.versioning import VersionAssigner
from context_engine.utils.hashing import calculate_content_hash

logger = logging.getLogger(__name__)

SYNTHETIC_FILE_PATH = "CONVERSATION_SUMMARY.md"

UserId = Union[uuid.UUID, str, None]


def _utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def _require_user_id(user_id: UserId, operation: str) -> uuid.UUID:
    """
    Validate the caller-supplied user id before any I/O.

    Raises:
        AuthenticationRequiredError: If the id is missing or not a UUID
    """
    if not user_id:
        raise AuthenticationRequiredError(operation)
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        raise AuthenticationRequiredError(operation, str(user_id)) from None


def build_conversation_summary(
    request: SaveSessionRequest,
    generated_at: datetime,
    tail: int = 10,
) -> FileEntry:
    """
    Synthesize a markdown file for a save that carries no files.

    The file embeds the session and project names, the generation time, the
    metadata and the last `tail` conversation messages.
    """
    recent = request.conversation[-tail:] if tail > 0 else []
    if recent:
        conversation_section = "\n\n".join(
            f"### {message.role.upper()}\n{message.content}" for message in recent
        )
    else:
        conversation_section = "No conversation captured."

    if request.metadata:
        metadata_section = json.dumps(request.metadata, indent=2, default=str)
    else:
        metadata_section = "None"

    content = "\n".join(
        [
            "# Context Engine Snapshot",
            "",
            f"- Session: {request.session_name}",
            f"- Project: {request.project_name}",
            f"- Generated: {generated_at.isoformat()}",
            "",
            "## Metadata",
            metadata_section,
            "",
            "## Conversation",
            conversation_section,
            "",
        ]
    )
    return FileEntry(path=SYNTHETIC_FILE_PATH, content=content)


class SessionService:
    """
    Save, resume and list sessions for one database session.

    Example:
        >>> with db_session() as db:
        ...     result = SessionService(db).save_session(request, user_id)
    """

    def __init__(
        self,
        session: Session,
        detector: Optional[TechStackDetector] = None,
        max_attempts: Optional[int] = None,
    ):
        self.session = session
        self.detector = detector or TechStackDetector()
        self.max_attempts = max_attempts or settings.save_max_attempts

        self.users = UserRepository(session)
        self.sessions = SessionRepository(session)
        self.contexts = ProjectContextRepository(session)
        self.snapshots = SnapshotRepository(session)
        self.versions = VersionAssigner(session)
        self.resolver = ProjectContextResolver(session)
        self.materializer = SnapshotMaterializer(session)
        self.resumer = ResumeResolver(session)

    # ===== Save =====

    def save_session(
        self, request: SaveSessionRequest, user_id: UserId
    ) -> SaveSessionResult:
        """
        Save a session as the next version of its (user, name, project) key.

        Args:
            request: Validated save request
            user_id: Owning user id

        Returns:
            SaveSessionResult with status "saved" (version 1) or "versioned"

        Raises:
            AuthenticationRequiredError: Missing, malformed or unknown user id
            VersionConflictError: Concurrent saves kept claiming the version
            FilePathConflictError: The same path appears twice in the request
            StoreUnavailableError: Any other database failure
        """
        user_uuid = _require_user_id(user_id, "session save")

        files = [FileEntry(path=f.path, content=f.content) for f in request.files]
        synthetic = not files
        if synthetic:
            files = [
                build_conversation_summary(
                    request, _utc_now(), settings.synthetic_conversation_tail
                )
            ]
        facts = self.detector.detect(files)

        logger.info(
            f"Saving session {request.session_name!r} in {request.project_name!r} "
            f"({len(files)} files, {len(request.conversation)} messages, "
            f"synthetic={synthetic})"
        )

        for attempt in range(self.max_attempts):
            try:
                result = self._save_once(request, user_uuid, files, facts, synthetic)
                self.session.commit()
                logger.info(
                    f"Session saved: {request.session_name!r} v{result.version} "
                    f"(id={result.session_id})"
                )
                return result

            except FilePathConflictError:
                self.session.rollback()
                logger.warning(
                    f"Duplicate file path in session {request.session_name!r}"
                )
                raise
            except IntegrityError as e:
                self.session.rollback()
                if attempt < self.max_attempts - 1:
                    backoff = 0.05 * (2**attempt)
                    logger.warning(
                        "Version conflict saving %r (attempt %s/%s), retrying in %.2fs",
                        request.session_name,
                        attempt + 1,
                        self.max_attempts,
                        backoff,
                    )
                    time.sleep(backoff)
                    continue
                logger.error(
                    f"Version conflict saving {request.session_name!r} "
                    f"after {self.max_attempts} attempts"
                )
                raise VersionConflictError(
                    request.session_name, request.project_name, self.max_attempts
                ) from e
            except DBAPIError as e:
                self.session.rollback()
                logger.error(f"Session save failed: {e}", exc_info=True)
                raise StoreUnavailableError(f"Session save failed: {e}") from e
            except Exception:
                self.session.rollback()
                raise

        # Only reachable with max_attempts < 1
        raise VersionConflictError(request.session_name, request.project_name, 0)

    def _save_once(
        self,
        request: SaveSessionRequest,
        user_id: uuid.UUID,
        files: list[FileEntry],
        facts: TechStackFacts,
        synthetic: bool,
    ) -> SaveSessionResult:
        """One attempt at the whole save; the caller commits or rolls back."""
        if self.users.get(user_id) is None:
            raise AuthenticationRequiredError("session save", str(user_id))

        description = request.metadata.get("description")
        resolved = self.resolver.resolve(
            user_id,
            request.project_name,
            facts,
            description=description if isinstance(description, str) else None,
        )
        snapshot = self.materializer.materialize(
            resolved.context, files, resolved.reason
        )
        linked_snapshot = snapshot or self.materializer.latest(resolved.context)

        version = self.versions.next_version(
            user_id, request.session_name, request.project_name
        )
        previous = None
        if version > 1:
            exact = self.sessions.find_exact(
                user_id, request.session_name, request.project_name, limit=1
            )
            previous = exact[0] if exact else None

        now = _utc_now()
        metadata: dict[str, Any] = {
            **request.metadata,
            "project_context_id": str(resolved.context.id),
            "tech_stack_detected": True,
            "snapshot_reason": (
                snapshot.snapshot_reason if snapshot else resolved.reason
            ),
            "snapshot_id": str(linked_snapshot.id) if linked_snapshot else None,
            "synthetic_files_added": synthetic,
        }

        saved = SavedSession(
            user_id=user_id,
            name=request.session_name,
            project_name=request.project_name,
            version=version,
            extra_data=metadata,
            snapshot_id=linked_snapshot.id if linked_snapshot else None,
            created_at=now,
            updated_at=now,
            last_accessed=now,
        )
        self.session.add(saved)
        # Version uniqueness violations surface here
        self.session.flush()

        self._insert_files(saved, files, now)
        self._insert_conversation(saved, request, now)

        if previous is not None:
            self._record_version_upgrade(saved, previous, len(files), now)

        return SaveSessionResult(
            session_id=saved.id,
            status="saved" if version == 1 else "versioned",
            version=version,
            message=(
                f"Session saved as {request.session_name}"
                if version == 1
                else f"Session saved as {request.session_name}-{version}"
            ),
            project_context_id=resolved.context.id,
        )

    def _insert_files(
        self, saved: SavedSession, files: list[FileEntry], now: datetime
    ) -> None:
        for entry in files:
            self.session.add(
                SessionFile(
                    session_id=saved.id,
                    path=entry.path,
                    content=entry.content,
                    content_hash=calculate_content_hash(entry.content),
                    line_count=entry.line_count,
                    file_size=entry.byte_size,
                    language=EXTENSION_LANGUAGES.get(entry.extension),
                    created_at=now,
                )
            )
        try:
            self.session.flush()
        except IntegrityError as e:
            raise FilePathConflictError(saved.name) from e

    def _insert_conversation(
        self, saved: SavedSession, request: SaveSessionRequest, now: datetime
    ) -> None:
        for order, message in enumerate(request.conversation):
            self.session.add(
                ConversationMessage(
                    session_id=saved.id,
                    role=message.role,
                    content=message.content,
                    message_order=order,
                    created_at=now,
                )
            )
        self.session.flush()

    def _record_version_upgrade(
        self,
        saved: SavedSession,
        previous: SavedSession,
        file_count: int,
        now: datetime,
    ) -> None:
        previous_files = len(
            self.sessions.file_paths_by_session([previous.id])[previous.id]
        )
        self.session.add(
            Summary(
                session_id=saved.id,
                previous_version=previous.version,
                summary=(
                    f"Version {saved.version} supersedes version {previous.version} "
                    f"({previous_files} -> {file_count} files)"
                ),
                summary_type=SummaryType.VERSION_UPGRADE.value,
                created_by="auto",
                created_at=now,
            )
        )
        self.session.flush()

    # ===== Resume / List =====

    def resume_session(
        self, request: ResumeSessionRequest, user_id: UserId
    ) -> ResumeOutcome:
        """
        Resolve a resume request through the exact / ambiguous / fuzzy ladder.

        Returns:
            FullSession or ResumeMatches; never raises for "nothing found"
        """
        user_uuid = _require_user_id(user_id, "session access")
        logger.info(
            f"Resuming session {request.session_name!r} "
            f"(project={request.project_name!r}, file={request.file_path!r})"
        )
        try:
            outcome = self.resumer.resolve(request, user_uuid)
            self.session.commit()
            return outcome
        except DBAPIError as e:
            self.session.rollback()
            logger.error(f"Session resume failed: {e}", exc_info=True)
            raise StoreUnavailableError(f"Session resume failed: {e}") from e

    def list_sessions(
        self, request: ListSessionsRequest, user_id: UserId
    ) -> SessionListResult:
        """
        List a user's sessions, newest first, with optional substring filters.
        """
        user_uuid = _require_user_id(user_id, "session listing")
        try:
            rows, total = self.sessions.list_for_user(
                user_uuid,
                project_fragment=request.project_name,
                file_path_fragment=request.file_path,
                limit=request.limit,
                offset=request.offset,
            )
            paths = self.sessions.file_paths_by_session([row.id for row in rows])
        except DBAPIError as e:
            self.session.rollback()
            logger.error(f"Session listing failed: {e}", exc_info=True)
            raise StoreUnavailableError(f"Session listing failed: {e}") from e

        logger.info(
            f"Listed {len(rows)} of {total} sessions "
            f"(limit={request.limit}, offset={request.offset})"
        )
        return SessionListResult(
            sessions=[
                SessionListItem(
                    session_id=row.id,
                    session_name=row.name,
                    project_name=row.project_name,
                    version=row.version,
                    files=paths.get(row.id, []),
                    created_at=row.created_at,
                    updated_at=row.updated_at,
                )
                for row in rows
            ],
            total=total,
            limit=request.limit,
            offset=request.offset,
        )

    # ===== Stats / Project contexts =====

    def get_session_stats(self, user_id: UserId) -> SessionStats:
        """Aggregate counts across one user's sessions."""
        user_uuid = _require_user_id(user_id, "session stats")
        try:
            counts = self.sessions.stats_for_user(user_uuid)
            context_count = self.contexts.count_for_user(user_uuid)
        except DBAPIError as e:
            self.session.rollback()
            logger.error(f"Session stats failed: {e}", exc_info=True)
            raise StoreUnavailableError(f"Session stats failed: {e}") from e

        total_sessions = counts["total_sessions"]
        return SessionStats(
            **counts,
            project_contexts=context_count,
            avg_files_per_session=(
                round(counts["total_files"] / total_sessions, 2)
                if total_sessions
                else 0.0
            ),
        )

    def list_project_contexts(
        self, user_id: UserId, limit: int = 20, offset: int = 0
    ) -> ProjectContextList:
        """List a user's active project contexts with their latest snapshot."""
        user_uuid = _require_user_id(user_id, "project listing")
        try:
            contexts = self.contexts.list_for_user(
                user_uuid, limit=limit, offset=offset
            )
            items = []
            for context in contexts:
                item = ProjectContextListItem.model_validate(context)
                item.snapshot_count = self.snapshots.count_for_context(context.id)
                latest = self.snapshots.get_latest(context.id)
                if latest is not None:
                    item.latest_snapshot = SnapshotResponse.model_validate(latest)
                items.append(item)
            total = self.contexts.count_for_user(user_uuid)
        except DBAPIError as e:
            self.session.rollback()
            logger.error(f"Project listing failed: {e}", exc_info=True)
            raise StoreUnavailableError(f"Project listing failed: {e}") from e

        return ProjectContextList(
            contexts=items,
            total=total,
            limit=limit,
            offset=offset,
        )

    def get_sessions_by_project_context(
        self,
        user_id: UserId,
        project_name: str,
        limit: int = 10,
        offset: int = 0,
    ) -> ProjectSessionsResult:
        """Hydrated sessions saved against any snapshot of a project context."""
        user_uuid = _require_user_id(user_id, "project sessions")
        try:
            context = self.contexts.get_active(user_uuid, project_name)
            if context is None:
                raise ProjectContextNotFoundError(project_name)

            rows, total = self.sessions.get_by_project_context(
                context.id, user_uuid, limit=limit, offset=offset
            )
            sessions = [self.resumer.hydrate(row.id, user_uuid) for row in rows]
            self.session.commit()
        except DBAPIError as e:
            self.session.rollback()
            logger.error(f"Project session lookup failed: {e}", exc_info=True)
            raise StoreUnavailableError(f"Project session lookup failed: {e}") from e

        return ProjectSessionsResult(sessions=sessions, total=total)

    def create_manual_snapshot(
        self, user_id: UserId, project_name: str
    ) -> SnapshotResponse:
        """
        Snapshot a project on request from the files of its newest session.

        Raises:
            ProjectContextNotFoundError: If the user has no such project
        """
        user_uuid = _require_user_id(user_id, "manual snapshot")
        context = self.contexts.get_active(user_uuid, project_name)
        if context is None:
            raise ProjectContextNotFoundError(project_name)

        latest_session = self.sessions.get_latest_in_project(user_uuid, project_name)
        files = (
            [FileEntry(path=f.path, content=f.content) for f in latest_session.files]
            if latest_session
            else []
        )
        try:
            snapshot = self.materializer.create_manual(context, files)
            self.session.commit()
        except DBAPIError as e:
            self.session.rollback()
            logger.error(f"Manual snapshot failed: {e}", exc_info=True)
            raise StoreUnavailableError(f"Manual snapshot failed: {e}") from e

        return SnapshotResponse.model_validate(snapshot)
