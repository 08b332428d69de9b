"""
Engine value types.

Plain dataclasses passed between the detector, the project context resolver
and the snapshot materializer before anything is written to the database.
"""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class FileEntry:
    """A (path, content) pair from a save request."""

    path: str
    content: str

    @property
    def extension(self) -> str:
        """Lower-cased extension without the dot ('' when there is none)."""
        name = self.path.rsplit("/", 1)[-1]
        if "." not in name:
            return ""
        return name.rsplit(".", 1)[-1].lower()

    @property
    def line_count(self) -> int:
        return len(self.content.split("\n"))

    @property
    def byte_size(self) -> int:
        return len(self.content.encode("utf-8"))


@dataclass
class TechStackFacts:
    """Detected technology profile of a file set."""

    languages: set[str] = field(default_factory=set)
    tech_stack: dict[str, Any] = field(default_factory=dict)
    project_type: str = "other"
    build_system: Optional[str] = None
    test_framework: Optional[str] = None

    def fingerprint_payload(self) -> dict[str, Any]:
        """Facts that participate in change detection."""
        return {
            "languages": sorted(self.languages),
            "tech_stack": self.tech_stack,
            "project_type": self.project_type,
            "build_system": self.build_system,
            "test_framework": self.test_framework,
        }


@dataclass
class KeyFile:
    """Excerpt of an important project file kept in a snapshot."""

    path: str
    type: str
    content: str
    truncated: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSONB storage."""
        return {
            "path": self.path,
            "type": self.type,
            "content": self.content,
            "truncated": self.truncated,
        }
