"""Session versioning and project context services."""

from context_engine.services.project_context import (
    ProjectContextResolver,
    ResolvedContext,
)
from context_engine.services.resume import ResumeResolver
from context_engine.services.session_service import SessionService
from context_engine.services.snapshots import SnapshotMaterializer
from context_engine.services.versioning import VersionAssigner

__all__ = [
    "ProjectContextResolver",
    "ResolvedContext",
    "ResumeResolver",
    "SessionService",
    "SnapshotMaterializer",
    "VersionAssigner",
]
