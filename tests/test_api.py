"""
Tests for the HTTP API.
"""

import uuid
from unittest.mock import patch

import pytest

from context_engine.exceptions import StoreUnavailableError, VersionConflictError


def _headers(user) -> dict[str, str]:
    return {"X-User-Id": str(user.id)}


def _save_body(**overrides):
    body = {
        "session_name": "bug-fix",
        "project_name": "proj-a",
        "files": [{"path": "src/main.py", "content": "print('hi')"}],
        "conversation": [{"role": "user", "content": "hello"}],
        "metadata": {},
    }
    body.update(overrides)
    return body


class TestRootEndpoints:
    """Tests for root and health endpoints."""

    def test_root(self, api_client):
        """Test root endpoint returns status."""
        response = api_client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health(self, api_client):
        """Test health endpoint reports database status."""
        with patch("context_engine.db.connection.check_connection", return_value=True):
            response = api_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": "healthy"}

    def test_health_degraded(self, api_client):
        """Test health endpoint when the database is down."""
        with patch(
            "context_engine.db.connection.check_connection", return_value=False
        ):
            response = api_client.get("/health")

        assert response.json()["status"] == "degraded"


class TestAuthentication:
    """Tests for the X-User-Id dependency."""

    def test_missing_header(self, api_client):
        """Test that requests without a user are rejected."""
        response = api_client.get("/sessions")
        assert response.status_code == 401

    def test_malformed_header(self, api_client):
        """Test that a non-UUID user id is a bad request."""
        response = api_client.get("/sessions", headers={"X-User-Id": "nope"})
        assert response.status_code == 400

    def test_unknown_user(self, api_client):
        """Test that an unknown user is rejected."""
        response = api_client.get(
            "/sessions", headers={"X-User-Id": str(uuid.uuid4())}
        )
        assert response.status_code == 401

    def test_inactive_user(self, api_client, inactive_user):
        """Test that an inactive user is forbidden."""
        response = api_client.get("/sessions", headers=_headers(inactive_user))
        assert response.status_code == 403


class TestSessionEndpoints:
    """Tests for /sessions endpoints."""

    def test_save_and_version(self, api_client, sample_user):
        """Test saving twice creates versions 1 and 2."""
        first = api_client.post(
            "/sessions", json=_save_body(), headers=_headers(sample_user)
        )
        second = api_client.post(
            "/sessions", json=_save_body(), headers=_headers(sample_user)
        )

        assert first.status_code == 201
        assert first.json()["status"] == "saved"
        assert first.json()["version"] == 1
        assert second.json()["status"] == "versioned"
        assert second.json()["message"] == "Session saved as bug-fix-2"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"session_name": ""},
            {"session_name": "bad/name"},
            {"project_name": "x" * 101},
            {"conversation": [{"role": "robot", "content": "hi"}]},
            {"files": [{"path": "", "content": "x"}]},
        ],
    )
    def test_save_validation(self, api_client, sample_user, overrides):
        """Test that malformed requests are rejected before the engine runs."""
        response = api_client.post(
            "/sessions", json=_save_body(**overrides), headers=_headers(sample_user)
        )
        assert response.status_code == 422

    def test_save_conflict_is_retryable(self, api_client, sample_user):
        """Test that a version conflict maps to 409 with retryable set."""
        with patch(
            "context_engine.api.routes.sessions.SessionService.save_session",
            side_effect=VersionConflictError("bug-fix", "proj-a", 3),
        ):
            response = api_client.post(
                "/sessions", json=_save_body(), headers=_headers(sample_user)
            )

        assert response.status_code == 409
        assert response.json()["detail"]["retryable"] is True

    def test_resume_full_session(self, api_client, sample_user):
        """Test resuming a unique session returns its content."""
        api_client.post("/sessions", json=_save_body(), headers=_headers(sample_user))

        response = api_client.post(
            "/sessions/resume",
            json={"session_name": "bug-fix"},
            headers=_headers(sample_user),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["session_name"] == "bug-fix"
        assert data["files"] == [{"path": "src/main.py", "content": "print('hi')"}]
        assert data["conversation"] == [{"role": "user", "content": "hello"}]

    def test_resume_ambiguous_has_suggestions(self, api_client, sample_user):
        """Test that ambiguous candidates carry a narrowing hint."""
        for project in ("proj-a", "proj-b"):
            api_client.post(
                "/sessions",
                json=_save_body(project_name=project),
                headers=_headers(sample_user),
            )

        response = api_client.post(
            "/sessions/resume",
            json={"session_name": "bug-fix"},
            headers=_headers(sample_user),
        )

        data = response.json()
        assert data["outcome"] == "ambiguous"
        suggestions = {m["suggestion"] for m in data["matches"]}
        assert suggestions == {
            'Try: "bug-fix" from project "proj-a"',
            'Try: "bug-fix" from project "proj-b"',
        }

    def test_resume_nothing_found(self, api_client, sample_user):
        """Test that no match is a 200 with empty candidates."""
        response = api_client.post(
            "/sessions/resume",
            json={"session_name": "ghost"},
            headers=_headers(sample_user),
        )

        assert response.status_code == 200
        assert response.json() == {"outcome": "fuzzy", "matches": []}

    def test_list_sessions(self, api_client, sample_user, other_user):
        """Test listing with filters is scoped to the caller."""
        api_client.post("/sessions", json=_save_body(), headers=_headers(sample_user))
        api_client.post(
            "/sessions",
            json=_save_body(project_name="other"),
            headers=_headers(sample_user),
        )
        api_client.post("/sessions", json=_save_body(), headers=_headers(other_user))

        response = api_client.get(
            "/sessions",
            params={"project_name": "proj", "limit": 5},
            headers=_headers(sample_user),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["limit"] == 5
        assert data["sessions"][0]["files"] == ["src/main.py"]

    def test_list_limit_validation(self, api_client, sample_user):
        """Test that limit outside 1..100 is rejected."""
        response = api_client.get(
            "/sessions", params={"limit": 0}, headers=_headers(sample_user)
        )
        assert response.status_code == 422

    def test_stats(self, api_client, sample_user):
        """Test session statistics."""
        api_client.post("/sessions", json=_save_body(), headers=_headers(sample_user))

        response = api_client.get("/sessions/stats", headers=_headers(sample_user))

        assert response.status_code == 200
        data = response.json()
        assert data["total_sessions"] == 1
        assert data["total_files"] == 1
        assert data["total_messages"] == 1
        assert data["project_contexts"] == 1

    def test_stats_store_unavailable(self, api_client, sample_user):
        """Test that a store outage during stats maps to 503."""
        with patch(
            "context_engine.api.routes.sessions.SessionService.get_session_stats",
            side_effect=StoreUnavailableError("Session stats failed: db down"),
        ):
            response = api_client.get("/sessions/stats", headers=_headers(sample_user))

        assert response.status_code == 503


class TestProjectEndpoints:
    """Tests for /projects endpoints."""

    def test_list_projects(self, api_client, sample_user):
        """Test listing project contexts with snapshot info."""
        api_client.post("/sessions", json=_save_body(), headers=_headers(sample_user))

        response = api_client.get("/projects", headers=_headers(sample_user))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        project = data["contexts"][0]
        assert project["project_name"] == "proj-a"
        assert project["programming_languages"] == ["python"]
        assert project["snapshot_count"] == 1
        assert project["latest_snapshot"]["snapshot_reason"] == "first-seen"

    def test_project_sessions(self, api_client, sample_user):
        """Test hydrated sessions of one project."""
        api_client.post("/sessions", json=_save_body(), headers=_headers(sample_user))

        response = api_client.get(
            "/projects/proj-a/sessions", headers=_headers(sample_user)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["sessions"][0]["files"][0]["path"] == "src/main.py"

    def test_project_sessions_unknown(self, api_client, sample_user):
        """Test that an unknown project is a 404."""
        response = api_client.get(
            "/projects/ghost/sessions", headers=_headers(sample_user)
        )
        assert response.status_code == 404

    def test_manual_snapshot(self, api_client, sample_user):
        """Test creating a manual snapshot."""
        api_client.post("/sessions", json=_save_body(), headers=_headers(sample_user))

        response = api_client.post(
            "/projects/proj-a/snapshots", headers=_headers(sample_user)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["snapshot_version"] == 2
        assert data["snapshot_reason"] == "manual"

    def test_manual_snapshot_unknown_project(self, api_client, sample_user):
        """Test that snapshotting an unknown project is a 404."""
        response = api_client.post(
            "/projects/ghost/snapshots", headers=_headers(sample_user)
        )
        assert response.status_code == 404

    @pytest.mark.parametrize(
        "method,path",
        [
            ("list_project_contexts", "/projects"),
            ("get_sessions_by_project_context", "/projects/proj-a/sessions"),
        ],
    )
    def test_store_unavailable(self, api_client, sample_user, method, path):
        """Test that a store outage on project reads maps to 503."""
        with patch(
            f"context_engine.api.routes.projects.SessionService.{method}",
            side_effect=StoreUnavailableError("db down"),
        ):
            response = api_client.get(path, headers=_headers(sample_user))

        assert response.status_code == 503
