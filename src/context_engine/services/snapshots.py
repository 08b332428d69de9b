"""
Project context snapshot materialization.

A snapshot is an immutable capture of a project's file tree, key-file
excerpts and dependency maps at the time of a save. Snapshots are numbered
per project context starting at 1 and are never updated after creation.
"""

import json
import logging
import tomllib
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from context_engine.config import settings
from context_engine.db.repositories.project_context import SnapshotRepository
from context_engine.detection.rules import normalize_path, requirement_name
from context_engine.models.db import (
    Complexity,
    ProjectContext,
    ProjectContextSnapshot,
    SnapshotReason,
)
from context_engine.models.parsed import FileEntry, KeyFile
from context_engine.services.project_context import REASON_NO_OP
from context_engine.utils.hashing import to_json_value

logger = logging.getLogger(__name__)

KEY_FILE_NAMES = frozenset(
    {
        "package.json",
        "tsconfig.json",
        "requirements.txt",
        "Cargo.toml",
        "go.mod",
        "README.md",
        ".gitignore",
        "Dockerfile",
        "docker-compose.yml",
    }
)
DOCUMENTATION_EXTENSIONS = frozenset({"md", "markdown", "rst"})
TRUNCATION_MARKER = "..."

# Upper bounds (exclusive) of total lines per complexity bucket
COMPLEXITY_THRESHOLDS = (
    (1_000, Complexity.LOW),
    (10_000, Complexity.MEDIUM),
    (50_000, Complexity.HIGH),
)


def _utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def estimate_complexity(total_lines: int) -> str:
    """
    Bucket a snapshot by its total line count.

    Examples:
        >>> estimate_complexity(120)
        'low'
        >>> estimate_complexity(75_000)
        'very-high'
    """
    for upper_bound, complexity in COMPLEXITY_THRESHOLDS:
        if total_lines < upper_bound:
            return complexity.value
    return Complexity.VERY_HIGH.value


def is_key_file(entry: FileEntry) -> bool:
    """Manifest/config/readme/ignore/container files and documentation."""
    path = normalize_path(entry.path)
    if path in KEY_FILE_NAMES:
        return True
    if entry.extension in DOCUMENTATION_EXTENSIONS:
        return True
    return entry.extension == "json" and "config" in path


def extract_key_file(entry: FileEntry, max_chars: int) -> KeyFile:
    """Excerpt a key file, truncating long content with a marker."""
    content = entry.content
    truncated = len(content) > max_chars
    if truncated:
        content = content[:max_chars] + TRUNCATION_MARKER
    return KeyFile(
        path=entry.path,
        type=entry.extension or "unknown",
        content=content,
        truncated=truncated,
    )


def _package_json_dependencies(content: str) -> tuple[dict, dict]:
    package = json.loads(content)
    if not isinstance(package, dict):
        return {}, {}
    return (
        dict(package.get("dependencies") or {}),
        dict(package.get("devDependencies") or {}),
    )


def _requirements_dependencies(content: str) -> dict[str, str]:
    dependencies: dict[str, str] = {}
    for line in content.split("\n"):
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("-"):
            continue
        name = requirement_name(line)
        if name:
            dependencies[name] = line[len(name) :].strip() or "*"
    return dependencies


def _pyproject_dependencies(content: str) -> tuple[dict, dict]:
    pyproject = tomllib.loads(content)
    project = pyproject.get("project") or {}
    poetry = (pyproject.get("tool") or {}).get("poetry") or {}

    dependencies: dict[str, Any] = {}
    dev_dependencies: dict[str, Any] = {}
    for requirement in project.get("dependencies") or []:
        if not isinstance(requirement, str):
            continue
        name = requirement_name(requirement)
        if name:
            dependencies[name] = requirement[len(name) :].strip() or "*"
    for extra in (project.get("optional-dependencies") or {}).values():
        for requirement in extra:
            if not isinstance(requirement, str):
                continue
            name = requirement_name(requirement)
            if name:
                dev_dependencies[name] = requirement[len(name) :].strip() or "*"
    for name, spec in (poetry.get("dependencies") or {}).items():
        if name != "python":
            dependencies[name.lower()] = to_json_value(spec)
    dev_group = ((poetry.get("group") or {}).get("dev") or {}).get("dependencies")
    for name, spec in (dev_group or {}).items():
        dev_dependencies[name.lower()] = to_json_value(spec)
    return dependencies, dev_dependencies


def extract_dependencies(files: Iterable[FileEntry]) -> tuple[dict, dict]:
    """
    Collect dependency and dev-dependency maps from recognized manifests.

    Parse failures degrade to whatever was collected so far; they never raise.

    Returns:
        Tuple of (dependencies, dev_dependencies)
    """
    dependencies: dict[str, Any] = {}
    dev_dependencies: dict[str, Any] = {}

    for entry in files:
        path = normalize_path(entry.path)
        try:
            if path == "package.json":
                deps, dev_deps = _package_json_dependencies(entry.content)
            elif path == "requirements.txt":
                deps, dev_deps = _requirements_dependencies(entry.content), {}
            elif path == "pyproject.toml":
                deps, dev_deps = _pyproject_dependencies(entry.content)
            else:
                continue
        except (
            json.JSONDecodeError,
            tomllib.TOMLDecodeError,
            AttributeError,
            TypeError,
            ValueError,
        ) as e:
            logger.warning(f"Ignoring unparseable manifest {entry.path}: {e}")
            continue
        dependencies.update(deps)
        dev_dependencies.update(dev_deps)

    return dependencies, dev_dependencies


class SnapshotMaterializer:
    """Creates versioned snapshots under a project context."""

    def __init__(self, session: Session, key_file_max_chars: Optional[int] = None):
        self.snapshots = SnapshotRepository(session)
        self.key_file_max_chars = key_file_max_chars or settings.key_file_max_chars

    def materialize(
        self,
        context: ProjectContext,
        files: list[FileEntry],
        reason: str,
    ) -> Optional[ProjectContextSnapshot]:
        """
        Create a snapshot if the resolved reason (or a missing first snapshot)
        calls for one.

        Args:
            context: Resolved project context (flushed)
            files: Files of the save
            reason: first-seen, tech-change or no-op

        Returns:
            The new snapshot, or None when nothing changed and a snapshot
            already exists
        """
        if reason != REASON_NO_OP:
            return self._create(context, files, reason, created_by="auto")

        if self.snapshots.count_for_context(context.id) == 0:
            logger.info(
                f"Project context {context.project_name} has no snapshot, "
                "creating bootstrap snapshot"
            )
            return self._create(
                context, files, SnapshotReason.FIRST_SEEN.value, created_by="system"
            )

        return None

    def create_manual(
        self, context: ProjectContext, files: list[FileEntry]
    ) -> ProjectContextSnapshot:
        """Create a snapshot on explicit request."""
        return self._create(
            context, files, SnapshotReason.MANUAL.value, created_by="manual"
        )

    def latest(self, context: ProjectContext) -> Optional[ProjectContextSnapshot]:
        return self.snapshots.get_latest(context.id)

    def _create(
        self,
        context: ProjectContext,
        files: list[FileEntry],
        reason: str,
        created_by: str,
    ) -> ProjectContextSnapshot:
        file_tree: dict[str, Any] = {}
        key_files: list[dict[str, Any]] = []
        total_lines = 0

        for entry in files:
            file_tree[entry.path] = {
                "size": entry.byte_size,
                "type": entry.extension or "unknown",
                "lines": entry.line_count,
            }
            total_lines += entry.line_count
            if is_key_file(entry):
                key_files.append(
                    extract_key_file(entry, self.key_file_max_chars).to_dict()
                )

        dependencies, dev_dependencies = extract_dependencies(files)
        version = self.snapshots.get_max_version(context.id) + 1

        snapshot = self.snapshots.create(
            project_context_id=context.id,
            snapshot_version=version,
            file_tree=file_tree,
            key_files=key_files,
            dependencies=dependencies,
            dev_dependencies=dev_dependencies,
            total_files=len(files),
            total_lines=total_lines,
            estimated_complexity=estimate_complexity(total_lines),
            snapshot_reason=reason,
            created_by=created_by,
            created_at=_utc_now(),
        )
        logger.info(
            f"Snapshot v{version} created for {context.project_name} "
            f"(reason={reason}, files={len(files)}, key_files={len(key_files)})"
        )
        return snapshot
