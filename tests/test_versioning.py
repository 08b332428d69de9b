"""
Tests for version assignment and the session repository version queries.
"""

from datetime import UTC, datetime

import pytest
from sqlalchemy.exc import IntegrityError

from context_engine.db.repositories.session import SessionRepository
from context_engine.models.db import SavedSession
from context_engine.services.versioning import VersionAssigner


def _add_session(db_session, user, name, project, version):
    now = datetime.now(UTC)
    saved = SavedSession(
        user_id=user.id,
        name=name,
        project_name=project,
        version=version,
        extra_data={},
        created_at=now,
        updated_at=now,
        last_accessed=now,
    )
    db_session.add(saved)
    db_session.flush()
    return saved


class TestVersionAssigner:
    """Tests for VersionAssigner.next_version."""

    def test_first_version_is_one(self, db_session, sample_user):
        """Test that an unsaved key starts at version 1."""
        assigner = VersionAssigner(db_session)
        assert assigner.next_version(sample_user.id, "bug-fix", "proj-a") == 1

    def test_next_version_is_max_plus_one(self, db_session, sample_user):
        """Test that the next version follows the stored maximum."""
        _add_session(db_session, sample_user, "bug-fix", "proj-a", 1)
        _add_session(db_session, sample_user, "bug-fix", "proj-a", 2)

        assigner = VersionAssigner(db_session)
        assert assigner.next_version(sample_user.id, "bug-fix", "proj-a") == 3

    def test_versions_are_per_key(self, db_session, sample_user, other_user):
        """Test that names, projects and users number independently."""
        _add_session(db_session, sample_user, "bug-fix", "proj-a", 1)
        _add_session(db_session, sample_user, "bug-fix", "proj-a", 2)

        assigner = VersionAssigner(db_session)
        assert assigner.next_version(sample_user.id, "bug-fix", "proj-b") == 1
        assert assigner.next_version(sample_user.id, "feature", "proj-a") == 1
        assert assigner.next_version(other_user.id, "bug-fix", "proj-a") == 1


class TestVersionUniqueness:
    """Tests for the (user, name, project, version) constraint."""

    def test_duplicate_version_rejected(self, db_session, sample_user):
        """Test that storing the same version twice violates uniqueness."""
        _add_session(db_session, sample_user, "bug-fix", "proj-a", 1)

        with pytest.raises(IntegrityError):
            _add_session(db_session, sample_user, "bug-fix", "proj-a", 1)
        db_session.rollback()

    def test_find_exact_newest_first(self, db_session, sample_user):
        """Test that exact matches come back newest version first."""
        for version in (1, 2, 3):
            _add_session(db_session, sample_user, "bug-fix", "proj-a", version)
        _add_session(db_session, sample_user, "bug-fix", "proj-b", 1)

        repo = SessionRepository(db_session)
        all_projects = repo.find_exact(sample_user.id, "bug-fix")
        proj_a = repo.find_exact(sample_user.id, "bug-fix", "proj-a")

        assert len(all_projects) == 4
        assert [s.version for s in proj_a] == [3, 2, 1]
        assert repo.get_max_version(sample_user.id, "bug-fix", "proj-a") == 3
