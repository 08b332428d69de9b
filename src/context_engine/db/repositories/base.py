"""
Base repository with generic CRUD operations.
"""

import uuid
from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from context_engine.models.db import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Generic repository bound to one model class and one session."""

    def __init__(self, model: Type[ModelType], session: Session):
        self.model = model
        self.session = session

    def create(self, **kwargs: Any) -> ModelType:
        """
        Create and flush a new instance.

        Args:
            **kwargs: Model field values

        Returns:
            Created instance (flushed, not committed)
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        self.session.flush()
        return instance

    def get(self, id: uuid.UUID) -> Optional[ModelType]:
        """
        Get instance by primary key.

        Args:
            id: Primary key UUID

        Returns:
            Instance or None
        """
        return self.session.get(self.model, id)

    def update(self, instance: ModelType, **kwargs: Any) -> ModelType:
        """
        Update fields on an instance and flush.

        Args:
            instance: Instance to update
            **kwargs: Field values to set

        Returns:
            Updated instance
        """
        for key, value in kwargs.items():
            setattr(instance, key, value)
        self.session.flush()
        return instance

