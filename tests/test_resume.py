"""
Tests for the resume ladder (exact, ambiguous, fuzzy).
"""

import uuid

import pytest

from context_engine.exceptions import AuthenticationRequiredError, SessionNotFoundError
from context_engine.models.db import SavedSession
from context_engine.schemas import FullSession, ResumeMatches, ResumeSessionRequest
from context_engine.services.resume import ResumeResolver


def _resume(service, user, name, project=None, file_path=None):
    return service.resume_session(
        ResumeSessionRequest(
            session_name=name, project_name=project, file_path=file_path
        ),
        user.id,
    )


class TestExactMatch:
    """Tests for the exact, unambiguous rung."""

    def test_single_exact_match_hydrates(self, service, sample_user, make_request):
        """Test that a unique name returns the full session."""
        service.save_session(
            make_request(
                files=[
                    {"path": "src/b.py", "content": "B"},
                    {"path": "src/a.py", "content": "A"},
                ],
                conversation=[
                    {"role": "user", "content": "first"},
                    {"role": "assistant", "content": "second"},
                    {"role": "user", "content": "third"},
                ],
                metadata={"branch": "main"},
            ),
            sample_user.id,
        )

        outcome = _resume(service, sample_user, "bug-fix")

        assert isinstance(outcome, FullSession)
        assert outcome.session_name == "bug-fix"
        assert outcome.project_name == "proj-a"
        assert outcome.version == 1
        assert [f.path for f in outcome.files] == ["src/a.py", "src/b.py"]
        assert [t.content for t in outcome.conversation] == [
            "first",
            "second",
            "third",
        ]
        assert outcome.metadata["branch"] == "main"
        assert outcome.metadata["project_context"]["project_name"] == "proj-a"
        assert outcome.metadata["project_context"]["snapshot"]["version"] == 1
        assert outcome.summaries == []

    def test_project_filter_resolves_ambiguity(self, service, sample_user, make_request):
        """Test that the project filter picks one of several same-named sessions."""
        service.save_session(make_request(project_name="proj-a"), sample_user.id)
        service.save_session(make_request(project_name="proj-b"), sample_user.id)

        outcome = _resume(service, sample_user, "bug-fix", project="proj-b")

        assert isinstance(outcome, FullSession)
        assert outcome.project_name == "proj-b"

    def test_project_filter_returns_newest_version(
        self, service, sample_user, make_request
    ):
        """Test that the newest version wins within a project."""
        service.save_session(make_request(), sample_user.id)
        service.save_session(
            make_request(files=[{"path": "src/main.py", "content": "v2"}]),
            sample_user.id,
        )

        outcome = _resume(service, sample_user, "bug-fix", project="proj-a")

        assert isinstance(outcome, FullSession)
        assert outcome.version == 2
        assert outcome.files[0].content == "v2"
        assert outcome.summaries[0].previous_version == 1
        assert outcome.summaries[0].summary_type == "version_upgrade"

    def test_file_path_filter(self, service, sample_user, make_request):
        """Test that a file path returns only that file."""
        service.save_session(
            make_request(
                files=[
                    {"path": "src/a.py", "content": "A"},
                    {"path": "src/b.py", "content": "B"},
                ]
            ),
            sample_user.id,
        )

        outcome = _resume(service, sample_user, "bug-fix", file_path="src/b.py")

        assert [f.path for f in outcome.files] == ["src/b.py"]

    def test_resume_records_access(
        self, service, sample_user, make_request, db_session
    ):
        """Test that resuming moves last_accessed forward."""
        result = service.save_session(make_request(), sample_user.id)
        before = db_session.get(SavedSession, result.session_id).last_accessed

        _resume(service, sample_user, "bug-fix")

        db_session.expire_all()
        after = db_session.get(SavedSession, result.session_id).last_accessed
        assert after > before


class TestAmbiguousMatch:
    """Tests for the exact but ambiguous rung."""

    def test_same_name_in_two_projects(self, service, sample_user, make_request):
        """Test that two projects sharing a name return candidates."""
        service.save_session(make_request(project_name="proj-a"), sample_user.id)
        service.save_session(
            make_request(
                project_name="proj-b",
                files=[{"path": "lib/x.py", "content": "x"}],
            ),
            sample_user.id,
        )

        outcome = _resume(service, sample_user, "bug-fix")

        assert isinstance(outcome, ResumeMatches)
        assert outcome.outcome == "ambiguous"
        assert {m.project_name for m in outcome.matches} == {"proj-a", "proj-b"}
        files = {m.project_name: m.files for m in outcome.matches}
        assert files["proj-b"] == ["lib/x.py"]

    def test_several_versions_without_project(
        self, service, sample_user, make_request
    ):
        """Test that several versions of one key are ambiguous without a project."""
        service.save_session(make_request(), sample_user.id)
        service.save_session(make_request(), sample_user.id)

        outcome = _resume(service, sample_user, "bug-fix")

        assert isinstance(outcome, ResumeMatches)
        assert outcome.outcome == "ambiguous"
        assert [m.version for m in outcome.matches] == [2, 1]

    def test_ambiguous_candidates_are_capped(
        self, service, sample_user, make_request
    ):
        """Test that many versions of one name return a bounded list."""
        for _ in range(15):
            service.save_session(make_request(), sample_user.id)

        outcome = _resume(service, sample_user, "bug-fix")

        assert outcome.outcome == "ambiguous"
        assert len(outcome.matches) == 10
        assert outcome.matches[0].version == 15
        assert outcome.matches[-1].version == 6

    def test_project_filter_beyond_cap_returns_newest(
        self, service, sample_user, make_request
    ):
        """Test that the newest version still wins past the candidate limit."""
        for _ in range(12):
            service.save_session(make_request(), sample_user.id)

        outcome = _resume(service, sample_user, "bug-fix", project="proj-a")

        assert isinstance(outcome, FullSession)
        assert outcome.version == 12


class TestFuzzyMatch:
    """Tests for the substring search rung."""

    def test_substring_case_insensitive(self, service, sample_user, make_request):
        """Test that a partial, differently-cased name finds candidates."""
        service.save_session(make_request(session_name="Auth Refactor"), sample_user.id)
        service.save_session(make_request(session_name="bug-fix"), sample_user.id)

        outcome = _resume(service, sample_user, "auth")

        assert isinstance(outcome, ResumeMatches)
        assert outcome.outcome == "fuzzy"
        assert [m.session_name for m in outcome.matches] == ["Auth Refactor"]

    def test_no_match_returns_empty_candidates(self, service, sample_user, make_request):
        """Test that nothing found is a result, not an error."""
        service.save_session(make_request(), sample_user.id)

        outcome = _resume(service, sample_user, "nonexistent")

        assert isinstance(outcome, ResumeMatches)
        assert outcome.outcome == "fuzzy"
        assert outcome.matches == []

    def test_results_capped_newest_first(self, service, sample_user, make_request):
        """Test that at most ten candidates come back, most recent first."""
        for i in range(1, 13):
            service.save_session(
                make_request(session_name=f"feature-{i}"), sample_user.id
            )

        outcome = _resume(service, sample_user, "feature")

        assert len(outcome.matches) == 10
        assert outcome.matches[0].session_name == "feature-12"
        assert "feature-1" not in [m.session_name for m in outcome.matches]

    def test_wildcards_are_literal(self, service, sample_user, make_request):
        """Test that an underscore in the query is not a LIKE wildcard."""
        service.save_session(make_request(session_name="a_b"), sample_user.id)
        service.save_session(make_request(session_name="axb"), sample_user.id)

        outcome = _resume(service, sample_user, "_b")

        assert [m.session_name for m in outcome.matches] == ["a_b"]

    def test_fuzzy_respects_project_filter(self, service, sample_user, make_request):
        """Test that a project substring narrows fuzzy candidates."""
        service.save_session(
            make_request(session_name="login-fix", project_name="web"), sample_user.id
        )
        service.save_session(
            make_request(session_name="login-page", project_name="mobile"),
            sample_user.id,
        )

        outcome = _resume(service, sample_user, "login", project="mob")

        assert [m.session_name for m in outcome.matches] == ["login-page"]


class TestUserIsolation:
    """Tests that resume never crosses users."""

    def test_other_users_sessions_invisible(
        self, service, sample_user, other_user, make_request
    ):
        """Test exact and fuzzy lookups are scoped to the caller."""
        service.save_session(make_request(), other_user.id)

        exact = _resume(service, sample_user, "bug-fix")
        fuzzy = _resume(service, sample_user, "bug")

        assert isinstance(exact, ResumeMatches)
        assert exact.matches == []
        assert fuzzy.matches == []

    def test_hydrate_other_users_session(
        self, db_session, service, sample_user, other_user, make_request
    ):
        """Test that hydrating by id checks ownership."""
        result = service.save_session(make_request(), other_user.id)

        with pytest.raises(SessionNotFoundError):
            ResumeResolver(db_session).hydrate(result.session_id, sample_user.id)

    def test_resume_requires_user(self, service):
        """Test that resume without a user id is rejected."""
        with pytest.raises(AuthenticationRequiredError):
            service.resume_session(ResumeSessionRequest(session_name="x"), None)

    def test_unknown_session_id(self, db_session, sample_user):
        """Test hydrating an id that does not exist."""
        with pytest.raises(SessionNotFoundError):
            ResumeResolver(db_session).hydrate(uuid.uuid4(), sample_user.id)
