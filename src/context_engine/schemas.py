"""
Schemas for Context Engine.

Pydantic models for request validation and for the results returned by the
session service, the API and the CLI.
"""

from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

# Letters, digits, dots, hyphens, underscores and spaces
NAME_PATTERN = r"^[a-zA-Z0-9._\-\s]+$"

MessageRoleLiteral = Literal["user", "assistant", "system"]


# ===== Request Schemas =====


class FileInput(BaseModel):
    """One file of a save request."""

    path: str = Field(min_length=1, max_length=500)
    content: str = Field(max_length=1_000_000)


class MessageInput(BaseModel):
    """One conversation turn of a save request."""

    role: MessageRoleLiteral
    content: str = Field(max_length=10_000)


class SaveSessionRequest(BaseModel):
    """Request to save (or version) a session."""

    session_name: str = Field(min_length=1, max_length=100, pattern=NAME_PATTERN)
    project_name: str = Field(min_length=1, max_length=100, pattern=NAME_PATTERN)
    files: list[FileInput] = Field(default_factory=list, max_length=50)
    conversation: list[MessageInput] = Field(default_factory=list, max_length=100)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ResumeSessionRequest(BaseModel):
    """Request to resume a session by (partial) name."""

    session_name: str = Field(min_length=1, max_length=100)
    project_name: Optional[str] = Field(default=None, max_length=100)
    file_path: Optional[str] = Field(default=None, max_length=500)


class ListSessionsRequest(BaseModel):
    """Filters and pagination for listing sessions."""

    project_name: Optional[str] = Field(default=None, max_length=100)
    file_path: Optional[str] = Field(default=None, max_length=500)
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


# ===== Save Schemas =====


class SaveSessionResult(BaseModel):
    """Outcome of a save."""

    session_id: UUID
    status: Literal["saved", "versioned"]
    version: int
    message: str
    project_context_id: Optional[UUID] = None


# ===== Resume Schemas =====


class SessionFileContent(BaseModel):
    """A hydrated file of a resumed session."""

    path: str
    content: str


class ConversationTurn(BaseModel):
    """A hydrated conversation turn."""

    role: MessageRoleLiteral
    content: str


class SessionSummaryResponse(BaseModel):
    """Summary text attached to a session."""

    file_path: str = "unknown"
    summary: str
    summary_type: str
    previous_version: int


class FullSession(BaseModel):
    """A fully hydrated session (exact resume outcome)."""

    session_id: UUID
    session_name: str
    project_name: str
    version: int
    files: list[SessionFileContent] = Field(default_factory=list)
    conversation: list[ConversationTurn] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    summaries: list[SessionSummaryResponse] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class SessionCandidate(BaseModel):
    """A bounded, non-hydrated match offered when resume cannot pick one."""

    session_id: UUID
    session_name: str
    project_name: str
    version: int
    files: list[str] = Field(default_factory=list)
    created_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)
    suggestion: Optional[str] = None


class ResumeMatches(BaseModel):
    """Candidates returned by the ambiguous and fuzzy resume outcomes."""

    outcome: Literal["ambiguous", "fuzzy"]
    matches: list[SessionCandidate] = Field(default_factory=list)


# ===== List Schemas =====


class SessionListItem(BaseModel):
    """One row of a session listing."""

    session_id: UUID
    session_name: str
    project_name: str
    version: int
    files: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class SessionListResult(BaseModel):
    """Paginated session listing."""

    sessions: list[SessionListItem] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


class SessionStats(BaseModel):
    """Aggregate counts for one user."""

    total_sessions: int = 0
    total_files: int = 0
    total_messages: int = 0
    unique_projects: int = 0
    project_contexts: int = 0
    avg_files_per_session: float = 0.0


# ===== Project Context Schemas =====


class SnapshotResponse(BaseModel):
    """Response schema for ProjectContextSnapshot."""

    id: UUID
    project_context_id: UUID
    snapshot_version: int
    snapshot_reason: str
    created_by: str
    total_files: int
    total_lines: int
    estimated_complexity: str
    created_at: datetime

    class Config:
        from_attributes = True


class ProjectContextResponse(BaseModel):
    """Response schema for ProjectContext."""

    id: UUID
    project_name: str
    description: Optional[str] = None
    project_type: str
    programming_languages: list[str] = Field(default_factory=list)
    build_system: Optional[str] = None
    test_framework: Optional[str] = None
    tech_stack: dict[str, Any] = Field(default_factory=dict)
    first_seen_at: datetime
    last_modified_at: datetime

    class Config:
        from_attributes = True


class ProjectContextListItem(ProjectContextResponse):
    """Project context with its snapshot count and latest snapshot."""

    snapshot_count: int = 0
    latest_snapshot: Optional[SnapshotResponse] = None


class ProjectContextList(BaseModel):
    """Paginated project context listing."""

    contexts: list[ProjectContextListItem] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


class ProjectSessionsResult(BaseModel):
    """Hydrated sessions linked to one project context."""

    sessions: list[FullSession] = Field(default_factory=list)
    total: int
