"""Session version assignment."""

import logging
import uuid

from sqlalchemy.orm import Session

from context_engine.db.repositories.session import SessionRepository

logger = logging.getLogger(__name__)


class VersionAssigner:
    """
    Computes the next version of a (user, session name, project name) key.

    Runs on the caller's transaction-bound session so the read of the current
    maximum and the insert of the next row commit or roll back together. The
    uniqueness constraint on the sessions table catches concurrent writers
    that read the same maximum.
    """

    def __init__(self, session: Session):
        self.sessions = SessionRepository(session)

    def next_version(
        self, user_id: uuid.UUID, session_name: str, project_name: str
    ) -> int:
        current = self.sessions.get_max_version(user_id, session_name, project_name)
        logger.debug(
            f"Next version for {session_name!r}/{project_name!r}: {current + 1}"
        )
        return current + 1
