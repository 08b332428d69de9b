"""Initial schema: users, sessions, files, conversations, summaries, project contexts

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    """Create all tables with their uniqueness and foreign-key constraints."""
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        _timestamp("created_at"),
        _timestamp("last_active"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )
    op.create_index("ix_users_username", "users", ["username"])
    op.create_index("ix_users_status", "users", ["status"])

    op.create_table(
        "project_contexts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("project_name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "tech_stack",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "project_type", sa.String(50), nullable=False, server_default="other"
        ),
        sa.Column(
            "programming_languages",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("build_system", sa.String(50), nullable=True),
        sa.Column("test_framework", sa.String(50), nullable=True),
        sa.Column("context_hash", sa.String(64), nullable=True),
        sa.Column(
            "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        _timestamp("first_seen_at"),
        _timestamp("last_modified_at"),
        sa.UniqueConstraint(
            "user_id", "project_name", name="uq_user_project_context"
        ),
    )
    op.create_index("ix_project_contexts_user_id", "project_contexts", ["user_id"])
    op.create_index(
        "ix_project_contexts_is_active", "project_contexts", ["is_active"]
    )

    op.create_table(
        "project_context_snapshots",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "project_context_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("project_contexts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("snapshot_version", sa.Integer(), nullable=False),
        sa.Column("file_tree", postgresql.JSONB(), nullable=False),
        sa.Column("key_files", postgresql.JSONB(), nullable=False),
        sa.Column("dependencies", postgresql.JSONB(), nullable=False),
        sa.Column("dev_dependencies", postgresql.JSONB(), nullable=False),
        sa.Column("total_files", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_lines", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "estimated_complexity",
            sa.String(20),
            nullable=False,
            server_default="low",
        ),
        sa.Column("snapshot_reason", sa.String(50), nullable=False),
        sa.Column("created_by", sa.String(50), nullable=False, server_default="auto"),
        _timestamp("created_at"),
        sa.UniqueConstraint(
            "project_context_id",
            "snapshot_version",
            name="uq_project_context_snapshot_version",
        ),
    )
    op.create_index(
        "ix_project_context_snapshots_project_context_id",
        "project_context_snapshots",
        ["project_context_id"],
    )

    op.create_table(
        "sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("project_name", sa.String(100), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "snapshot_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("project_context_snapshots.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("last_accessed"),
        sa.UniqueConstraint(
            "user_id", "name", "project_name", "version", name="uq_session_version"
        ),
        sa.CheckConstraint("version >= 1", name="ck_sessions_version_positive"),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])
    op.create_index("ix_sessions_snapshot_id", "sessions", ["snapshot_id"])
    op.create_index("ix_sessions_user_updated", "sessions", ["user_id", "updated_at"])
    op.create_index(
        "ix_sessions_user_project", "sessions", ["user_id", "project_name"]
    )

    op.create_table(
        "files",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("path", sa.String(500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("line_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("file_size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("language", sa.String(50), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("session_id", "path", name="uq_session_file_path"),
    )
    op.create_index("ix_files_session_id", "files", ["session_id"])
    op.create_index("ix_files_content_hash", "files", ["content_hash"])

    op.create_table(
        "conversations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(10), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_order", sa.Integer(), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint(
            "session_id", "message_order", name="uq_conversation_message_order"
        ),
        sa.CheckConstraint(
            "role IN ('user', 'assistant', 'system')", name="ck_conversations_role"
        ),
    )
    op.create_index("ix_conversations_session_id", "conversations", ["session_id"])

    op.create_table(
        "summaries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "file_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("files.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("previous_version", sa.Integer(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column(
            "summary_type",
            sa.String(30),
            nullable=False,
            server_default="version_upgrade",
        ),
        sa.Column("created_by", sa.String(20), nullable=False, server_default="auto"),
        _timestamp("created_at"),
    )
    op.create_index("ix_summaries_session_id", "summaries", ["session_id"])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("summaries")
    op.drop_table("conversations")
    op.drop_table("files")
    op.drop_table("sessions")
    op.drop_table("project_context_snapshots")
    op.drop_table("project_contexts")
    op.drop_table("users")
