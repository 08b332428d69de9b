"""
Project context resolution.

Finds or creates the single ProjectContext row of a (user, project) pair and
decides, by comparing fact fingerprints, whether the save that triggered the
lookup warrants a new snapshot.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from context_engine.db.repositories.project_context import ProjectContextRepository
from context_engine.models.db import ProjectContext, SnapshotReason
from context_engine.models.parsed import TechStackFacts
from context_engine.utils.hashing import calculate_facts_fingerprint

logger = logging.getLogger(__name__)

REASON_NO_OP = "no-op"


def _utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


@dataclass
class ResolvedContext:
    """Result of resolving a project context for one save."""

    context: ProjectContext
    reason: str  # "first-seen", "tech-change" or "no-op"
    fingerprint: str
    previous_fingerprint: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.reason != REASON_NO_OP


class ProjectContextResolver:
    """Find-or-create plus change detection for project contexts."""

    def __init__(self, session: Session):
        self.session = session
        self.contexts = ProjectContextRepository(session)

    def resolve(
        self,
        user_id: uuid.UUID,
        project_name: str,
        facts: TechStackFacts,
        description: Optional[str] = None,
    ) -> ResolvedContext:
        """
        Resolve the context for a save.

        Args:
            user_id: Owning user UUID
            project_name: Exact project name
            facts: Facts detected from the save's files
            description: Optional project description

        Returns:
            ResolvedContext with reason first-seen, tech-change or no-op
        """
        fingerprint = calculate_facts_fingerprint(facts.fingerprint_payload())
        existing = self.contexts.get_by_user_and_name(user_id, project_name)

        if existing is None:
            now = _utc_now()
            context = self.contexts.create(
                user_id=user_id,
                project_name=project_name,
                description=description,
                tech_stack=facts.tech_stack,
                project_type=facts.project_type,
                programming_languages=sorted(facts.languages),
                build_system=facts.build_system,
                test_framework=facts.test_framework,
                context_hash=fingerprint,
                is_active=True,
                first_seen_at=now,
                last_modified_at=now,
            )
            logger.info(
                f"Project context created: {project_name} "
                f"(type={facts.project_type}, id={context.id})"
            )
            return ResolvedContext(
                context=context,
                reason=SnapshotReason.FIRST_SEEN.value,
                fingerprint=fingerprint,
            )

        previous = existing.context_hash
        reactivated = not existing.is_active
        if reactivated:
            existing.is_active = True
            logger.info(f"Reactivated project context: {project_name}")

        if previous == fingerprint:
            if reactivated:
                self.session.flush()
            logger.debug(f"Project context unchanged: {project_name}")
            return ResolvedContext(
                context=existing,
                reason=REASON_NO_OP,
                fingerprint=fingerprint,
                previous_fingerprint=previous,
            )

        # Facts changed: overwrite in place, history lives in snapshots
        self.contexts.update(
            existing,
            tech_stack=facts.tech_stack,
            project_type=facts.project_type,
            programming_languages=sorted(facts.languages),
            build_system=facts.build_system,
            test_framework=facts.test_framework,
            context_hash=fingerprint,
            last_modified_at=_utc_now(),
            **({"description": description} if description else {}),
        )
        logger.info(
            f"Project context tech change: {project_name} "
            f"({(previous or '')[:12]} -> {fingerprint[:12]})"
        )
        return ResolvedContext(
            context=existing,
            reason=SnapshotReason.TECH_CHANGE.value,
            fingerprint=fingerprint,
            previous_fingerprint=previous,
        )
