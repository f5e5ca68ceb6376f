"""
Curator repository for the Curator Library server.

Handles curator registration, the curator page lookup (curator plus
catalog) and public notice updates. Notice length is enforced here before
anything is written to the store.
"""

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from ..models.curator import PUBLIC_NOTICE_MAX_LENGTH, CuratorCreateSchema
from ..models.curator import Curator as CuratorModel
from .book_repository import BookRepository
from .repository import BaseRepository, ConflictError, NotFoundError, ValidationError, new_id
from .schema import Curator as CuratorDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)


def validate_public_notice(text: str) -> str:
    """
    Check a public notice before it is persisted.

    Raises:
        ValidationError: If the notice is longer than 200 characters
    """
    if len(text) > PUBLIC_NOTICE_MAX_LENGTH:
        raise ValidationError(
            f"Public notice cannot exceed {PUBLIC_NOTICE_MAX_LENGTH} characters "
            f"(got {len(text)})"
        )
    return text


class CuratorRepository(BaseRepository[CuratorDB, CuratorModel]):
    """Repository for curator data access."""

    @property
    def model_class(self):
        return CuratorDB

    @property
    def response_schema(self):
        return CuratorModel

    def _to_response_model(self, db_obj: CuratorDB) -> CuratorModel:
        # books are only loaded for the curator page
        return CuratorModel.model_validate(
            {
                "id": db_obj.id,
                "name": db_obj.name,
                "description": db_obj.description,
                "country": db_obj.country,
                "state": db_obj.state,
                "city": db_obj.city,
                "public_notice": db_obj.public_notice,
                "notice_version": db_obj.notice_version,
                "cover_image": db_obj.cover_image,
                "is_verified": db_obj.is_verified,
                "created_at": db_obj.created_at,
            }
        )

    def create_curator(self, data: CuratorCreateSchema) -> CuratorModel:
        """Register a new curator with an empty catalog."""
        validate_public_notice(data.public_notice)

        curator = CuratorDB(
            id=new_id("curator"),
            name=data.name,
            description=data.description,
            country=data.country,
            state=data.state,
            city=data.city,
            public_notice=data.public_notice,
            notice_version=0,
            cover_image=data.cover_image,
            is_verified=data.is_verified,
            created_at=datetime.now(),
        )
        self.session.add(curator)
        safe_commit(self.session, "create curator")
        logger.info("Registered curator %s (%s)", curator.id, curator.name)
        return self._to_response_model(curator)

    def get_curator(self, curator_id: str, include_books: bool = True) -> CuratorModel:
        """
        Get a curator, optionally with their catalog in creation order.

        Raises:
            NotFoundError: If the curator does not exist
        """
        query = (
            select(CuratorDB)
            .where(CuratorDB.id == curator_id)
            .execution_options(populate_existing=True)
        )
        if include_books:
            query = query.options(selectinload(CuratorDB.books))

        curator = safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get curator",
        )
        if curator is None:
            raise NotFoundError(f"Curator {curator_id} not found")

        result = self._to_response_model(curator)
        if include_books:
            result.books = [BookRepository.to_model(book) for book in curator.books]
        return result

    def update_public_notice(
        self, curator_id: str, text: str, expected_version: int | None = None
    ) -> CuratorModel:
        """
        Replace a curator's public notice.

        Without ``expected_version`` the last writer wins. With it, the update
        only applies if nobody changed the notice since that version was read.

        Raises:
            ValidationError: If the notice is too long (nothing is written)
            NotFoundError: If the curator does not exist
            ConflictError: If ``expected_version`` is stale
        """
        validate_public_notice(text)

        if not self.exists(curator_id):
            raise NotFoundError(f"Curator {curator_id} not found")

        stmt = (
            update(CuratorDB)
            .where(CuratorDB.id == curator_id)
            .values(
                public_notice=text,
                notice_version=CuratorDB.notice_version + 1,
                updated_at=datetime.now(),
            )
        )
        if expected_version is not None:
            stmt = stmt.where(CuratorDB.notice_version == expected_version)

        result = safe_query(
            self.session, lambda s: s.execute(stmt), "Failed to update public notice"
        )
        if result.rowcount != 1:
            self.session.rollback()
            raise ConflictError(
                "Public notice was changed by someone else; reload and try again"
            )
        safe_commit(self.session, "update public notice")

        return self.get_curator(curator_id, include_books=False)
