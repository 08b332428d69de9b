"""
Tests for SessionService.list_sessions.
"""

from unittest.mock import patch

import pytest
from pydantic import ValidationError
from sqlalchemy.exc import OperationalError

from context_engine.exceptions import (
    AuthenticationRequiredError,
    StoreUnavailableError,
)
from context_engine.schemas import ListSessionsRequest


def _list(service, user, **filters):
    return service.list_sessions(ListSessionsRequest(**filters), user.id)


@pytest.fixture
def populated(service, sample_user, other_user, make_request):
    """Sessions across two projects plus one belonging to another user."""
    service.save_session(
        make_request(
            session_name="auth",
            project_name="web-frontend",
            files=[{"path": "src/components/Login.tsx", "content": "x"}],
        ),
        sample_user.id,
    )
    service.save_session(
        make_request(
            session_name="cache",
            project_name="api-server",
            files=[{"path": "app/cache.py", "content": "x"}],
        ),
        sample_user.id,
    )
    service.save_session(
        make_request(
            session_name="auth",
            project_name="web-frontend",
            files=[
                {"path": "src/components/Login.tsx", "content": "y"},
                {"path": "src/api/client.ts", "content": "y"},
            ],
        ),
        sample_user.id,
    )
    service.save_session(make_request(session_name="private"), other_user.id)


class TestListSessions:
    """Tests for listing, filtering and pagination."""

    def test_newest_first_with_files(self, service, sample_user, populated):
        """Test default ordering and per-session file paths."""
        result = _list(service, sample_user)

        assert result.total == 3
        assert [(s.session_name, s.version) for s in result.sessions] == [
            ("auth", 2),
            ("cache", 1),
            ("auth", 1),
        ]
        assert result.sessions[0].files == [
            "src/api/client.ts",
            "src/components/Login.tsx",
        ]
        assert result.limit == 20
        assert result.offset == 0

    def test_project_substring(self, service, sample_user, populated):
        """Test case-insensitive project name filtering."""
        result = _list(service, sample_user, project_name="FRONT")

        assert result.total == 2
        assert {s.project_name for s in result.sessions} == {"web-frontend"}

    def test_file_path_substring(self, service, sample_user, populated):
        """Test filtering on any attached file path."""
        result = _list(service, sample_user, file_path="client.ts")

        assert result.total == 1
        assert result.sessions[0].version == 2

    def test_pagination(self, service, sample_user, populated):
        """Test that limit and offset page while total stays constant."""
        first = _list(service, sample_user, limit=2)
        second = _list(service, sample_user, limit=2, offset=2)

        assert [s.session_name for s in first.sessions] == ["auth", "cache"]
        assert [s.version for s in second.sessions] == [1]
        assert first.total == second.total == 3

    def test_offset_past_end(self, service, sample_user, populated):
        """Test that paging past the end is an empty page, not an error."""
        result = _list(service, sample_user, offset=50)

        assert result.sessions == []
        assert result.total == 3

    def test_percent_is_literal(self, service, sample_user, populated):
        """Test that a percent sign in a filter matches only itself."""
        result = _list(service, sample_user, project_name="%")
        assert result.total == 0

    def test_scoped_to_user(self, service, other_user, populated):
        """Test that each user only sees their own sessions."""
        result = _list(service, other_user)

        assert result.total == 1
        assert result.sessions[0].session_name == "private"

    def test_requires_user(self, service):
        """Test that listing without a user id is rejected."""
        with pytest.raises(AuthenticationRequiredError):
            service.list_sessions(ListSessionsRequest(), None)

    def test_store_failure_rolls_back(self, service, sample_user, db_session):
        """Test that a database error is translated after a rollback."""

        def unavailable(*args, **kwargs):
            raise OperationalError("SELECT saved_sessions", {}, Exception("db down"))

        service.sessions.list_for_user = unavailable

        with patch.object(db_session, "rollback", wraps=db_session.rollback) as spy:
            with pytest.raises(StoreUnavailableError):
                _list(service, sample_user)

        spy.assert_called_once()


class TestListSessionsRequest:
    """Tests for list request validation."""

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_bounds(self, limit):
        """Test that limit must be within 1..100."""
        with pytest.raises(ValidationError):
            ListSessionsRequest(limit=limit)

    def test_negative_offset(self):
        """Test that offset cannot be negative."""
        with pytest.raises(ValidationError):
            ListSessionsRequest(offset=-1)
