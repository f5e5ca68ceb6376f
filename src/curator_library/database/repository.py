"""
Repository base class for the Curator Library server.

Repositories keep SQLAlchemy out of the tool handlers: handlers pass a
session in and receive pydantic models back, which serialize cleanly into
MCP responses. All queries go through ``safe_query`` / ``safe_commit`` so a
failing store always surfaces as ``StorageError``.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar
from uuid import uuid4

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RepositoryException,
    StorageError,
    ValidationError,
)
from .schema import Base
from .session import safe_query

ModelType = TypeVar("ModelType", bound=Base)
ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)

__all__ = [
    "BaseRepository",
    "ConflictError",
    "InvalidStateError",
    "NotFoundError",
    "RepositoryException",
    "StorageError",
    "ValidationError",
    "new_id",
]


def new_id(prefix: str) -> str:
    """Generate an opaque identifier such as ``book_3f9a1c2b7d4e``."""
    return f"{prefix}_{uuid4().hex[:12]}"


class BaseRepository(ABC, Generic[ModelType, ResponseSchemaType]):
    """Common lookups shared by the catalog, curator and ledger repositories."""

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def model_class(self) -> type[ModelType]:
        """Return the SQLAlchemy model class."""

    @property
    @abstractmethod
    def response_schema(self) -> type[ResponseSchemaType]:
        """Return the Pydantic response schema."""

    def _to_response_model(self, db_obj: ModelType) -> ResponseSchemaType:
        return self.response_schema.model_validate(db_obj, from_attributes=True)

    def _get_db_object(self, id: str) -> ModelType | None:
        # availability and status are changed with bulk UPDATEs, so never
        # trust a previously loaded instance
        query = (
            select(self.model_class)
            .where(self.model_class.id == id)
            .execution_options(populate_existing=True)
        )
        return safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            f"Failed to get {self.model_class.__name__} by ID",
        )

    def get_by_id(self, id: str) -> ResponseSchemaType | None:
        """
        Get entity by ID.

        Returns:
            Pydantic model or None if not found

        Raises:
            StorageError: On database errors
        """
        db_obj = self._get_db_object(id)
        if db_obj is None:
            return None
        return self._to_response_model(db_obj)

    def exists(self, id: str) -> bool:
        query = (
            select(func.count()).select_from(self.model_class).where(self.model_class.id == id)
        )
        count = safe_query(
            self.session, lambda s: s.execute(query).scalar(), "Failed to check existence"
        )
        return bool(count)
