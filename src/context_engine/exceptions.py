"""Custom exceptions for Context Engine."""

from typing import Optional


class AuthenticationRequiredError(Exception):
    """Raised when an operation is called without a resolvable user id."""

    def __init__(self, operation: str, user_id: Optional[str] = None):
        self.operation = operation
        self.user_id = user_id
        message = f"User authentication required for {operation}"
        if user_id:
            message += f": unknown user {user_id}"
        super().__init__(message)


class SessionNotFoundError(Exception):
    """Raised when a session looked up by id does not exist for the user."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class SessionConflictError(Exception):
    """Raised when a save collides with a uniqueness constraint."""

    retryable = True


class VersionConflictError(SessionConflictError):
    """Raised when concurrent saves keep claiming the same version number."""

    def __init__(self, session_name: str, project_name: str, attempts: int):
        self.session_name = session_name
        self.project_name = project_name
        self.attempts = attempts
        super().__init__(
            f"Version conflict saving {session_name!r} in project {project_name!r} "
            f"after {attempts} attempt(s)"
        )


class FilePathConflictError(SessionConflictError):
    """Raised when a session save contains the same file path twice."""

    def __init__(self, session_name: str):
        self.session_name = session_name
        super().__init__(f"Duplicate file path in session {session_name!r}")


class StoreUnavailableError(Exception):
    """Raised when the data store fails for reasons other than a conflict."""


class ProjectContextNotFoundError(Exception):
    """Raised when a project context looked up by name does not exist for the user."""

    def __init__(self, project_name: str):
        self.project_name = project_name
        super().__init__(f"Project context not found: {project_name}")
