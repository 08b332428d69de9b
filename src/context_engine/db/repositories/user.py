"""
User repository.
"""

from typing import Optional

from sqlalchemy.orm import Session

from context_engine.db.repositories.base import BaseRepository
from context_engine.models.db import User


class UserRepository(BaseRepository[User]):
    """Repository for User model."""

    def __init__(self, session: Session):
        super().__init__(User, session)

    def get_by_username(self, username: str) -> Optional[User]:
        """
        Get user by username.

        Args:
            username: Unique username

        Returns:
            User instance or None
        """
        return self.session.query(User).filter(User.username == username).first()

