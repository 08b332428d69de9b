"""
SQLAlchemy database models for Context Engine.

These models represent the database schema for saved coding sessions and the
per-project technology context derived from them.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class UserStatus(str, enum.Enum):
    """Account status of a user."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class ProjectType(str, enum.Enum):
    """Coarse classification of a project."""

    WEB_APP = "web-app"
    CLI_TOOL = "cli-tool"
    API_SERVICE = "api-service"
    LIBRARY = "library"
    MOBILE_APP = "mobile-app"
    DESKTOP_APP = "desktop-app"
    OTHER = "other"


class SnapshotReason(str, enum.Enum):
    """Why a project context snapshot was materialized."""

    FIRST_SEEN = "first-seen"
    TECH_CHANGE = "tech-change"
    MAJOR_UPDATE = "major-update"
    DEPENDENCY_CHANGE = "dependency-change"
    MANUAL = "manual"


class Complexity(str, enum.Enum):
    """Coarse size estimate of a snapshot."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very-high"


class SummaryType(str, enum.Enum):
    """Kind of session summary."""

    VERSION_UPGRADE = "version_upgrade"
    ARCHIVAL = "archival"
    CLEANUP = "cleanup"


class User(Base):
    """Identity scope for sessions and project contexts."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserStatus.ACTIVE.value, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_active: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    sessions: Mapped[list["SavedSession"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    project_contexts: Mapped[list["ProjectContext"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username!r})>"


class ProjectContext(Base):
    """Detected technology profile of one project for one user."""

    __tablename__ = "project_contexts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tech_stack: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    project_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ProjectType.OTHER.value
    )
    programming_languages: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list
    )
    build_system: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    test_framework: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    context_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )
    first_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("user_id", "project_name", name="uq_user_project_context"),
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="project_contexts")
    snapshots: Mapped[list["ProjectContextSnapshot"]] = relationship(
        back_populates="project_context",
        cascade="all, delete-orphan",
        order_by="ProjectContextSnapshot.snapshot_version",
    )

    def __repr__(self) -> str:
        return (
            f"<ProjectContext(id={self.id}, "
            f"project_name={self.project_name!r}, "
            f"type={self.project_type!r})>"
        )


class ProjectContextSnapshot(Base):
    """Immutable, versioned capture of a project's file and dependency state."""

    __tablename__ = "project_context_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    project_context_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("project_contexts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    snapshot_version: Mapped[int] = mapped_column(Integer, nullable=False)
    file_tree: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    key_files: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    dependencies: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    dev_dependencies: Mapped[dict] = mapped_column(
        JSONB, nullable=False, default=dict
    )
    total_files: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_complexity: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Complexity.LOW.value
    )
    snapshot_reason: Mapped[str] = mapped_column(String(50), nullable=False)
    created_by: Mapped[str] = mapped_column(
        String(50), nullable=False, default="auto"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "project_context_id",
            "snapshot_version",
            name="uq_project_context_snapshot_version",
        ),
    )

    # Relationships
    project_context: Mapped["ProjectContext"] = relationship(
        back_populates="snapshots"
    )
    sessions: Mapped[list["SavedSession"]] = relationship(back_populates="snapshot")

    def __repr__(self) -> str:
        return (
            f"<ProjectContextSnapshot(id={self.id}, "
            f"version={self.snapshot_version}, "
            f"reason={self.snapshot_reason!r})>"
        )


class SavedSession(Base):
    """A named, versioned snapshot of a working set."""

    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    project_name: Mapped[str] = mapped_column(String(100), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    extra_data: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, default=dict
    )
    snapshot_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("project_context_snapshots.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_accessed: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "name", "project_name", "version", name="uq_session_version"
        ),
        CheckConstraint("version >= 1", name="ck_sessions_version_positive"),
        Index("ix_sessions_user_updated", "user_id", "updated_at"),
        Index("ix_sessions_user_project", "user_id", "project_name"),
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="sessions")
    snapshot: Mapped[Optional["ProjectContextSnapshot"]] = relationship(
        back_populates="sessions"
    )
    files: Mapped[list["SessionFile"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionFile.path",
    )
    messages: Mapped[list["ConversationMessage"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ConversationMessage.message_order",
    )
    summaries: Mapped[list["Summary"]] = relationship(
        back_populates="session", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return (
            f"<SavedSession(id={self.id}, name={self.name!r}, "
            f"project={self.project_name!r}, version={self.version})>"
        )


class SessionFile(Base):
    """A path/content pair attached to one session."""

    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    line_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    language: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("session_id", "path", name="uq_session_file_path"),
    )

    # Relationships
    session: Mapped["SavedSession"] = relationship(back_populates="files")

    def __repr__(self) -> str:
        return f"<SessionFile(id={self.id}, path={self.path!r})>"


class ConversationMessage(Base):
    """One transcript turn attached to a session."""

    __tablename__ = "conversations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(String(10), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_order: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "session_id", "message_order", name="uq_conversation_message_order"
        ),
        CheckConstraint(
            "role IN ('user', 'assistant', 'system')", name="ck_conversations_role"
        ),
    )

    # Relationships
    session: Mapped["SavedSession"] = relationship(back_populates="messages")

    def __repr__(self) -> str:
        return (
            f"<ConversationMessage(id={self.id}, role={self.role!r}, "
            f"order={self.message_order})>"
        )


class Summary(Base):
    """Summary text attached to a session (e.g. what a new version superseded)."""

    __tablename__ = "summaries"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("files.id", ondelete="SET NULL"),
        nullable=True,
    )
    previous_version: Mapped[int] = mapped_column(Integer, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    summary_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default=SummaryType.VERSION_UPGRADE.value
    )
    created_by: Mapped[str] = mapped_column(String(20), nullable=False, default="auto")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    session: Mapped["SavedSession"] = relationship(back_populates="summaries")
    file: Mapped[Optional["SessionFile"]] = relationship()

    def __repr__(self) -> str:
        return (
            f"<Summary(id={self.id}, type={self.summary_type!r}, "
            f"previous_version={self.previous_version})>"
        )
