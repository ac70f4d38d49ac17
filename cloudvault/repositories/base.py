"""Base repository with shared get-by-ID patterns.

Subclasses specify model_class and not_found_error; the base provides the
common lookups by primary key.
"""

from typing import TypeVar, Generic, Optional, Type
from sqlalchemy.orm import Session

from ..database import Base
from ..exceptions import VaultException

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Shared repository logic for SQLAlchemy models.

    Class variables to set in subclasses:
        model_class:     The SQLAlchemy model (e.g., Node)
        not_found_error: Exception class to raise from get_by_id
    """

    model_class: Type[ModelT]
    not_found_error: Type[VaultException]

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, entity_id: str) -> ModelT:
        """Get entity by primary key. Raises not_found_error if missing."""
        entity = self.get_by_id_optional(entity_id)
        if not entity:
            raise self.not_found_error(entity_id)
        return entity

    def get_by_id_optional(self, entity_id: str) -> Optional[ModelT]:
        """Get entity by primary key, or None if not found."""
        return self.db.query(self.model_class).filter(self.model_class.id == entity_id).first()
