"""
Book repository (catalog store) for the Curator Library server.

Owns the set of book items per curator:

1. **Add**: new items start ``available`` with a fresh identifier
2. **List**: a curator's catalog in creation order
3. **Search**: exact ISBN filter and title/author text search

Availability is never written here; only the lending coordinator moves it.
"""

import logging
from datetime import datetime

from sqlalchemy import and_, or_, select

from ..models.book import Availability, BookCreateSchema, BookItem, normalize_isbn
from .repository import BaseRepository, NotFoundError, ValidationError, new_id
from .schema import AvailabilityEnum
from .schema import Book as BookDB
from .schema import Curator as CuratorDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)


class BookRepository(BaseRepository[BookDB, BookItem]):
    """Repository for the per-curator catalog."""

    @property
    def model_class(self):
        return BookDB

    @property
    def response_schema(self):
        return BookItem

    @staticmethod
    def to_model(book: BookDB) -> BookItem:
        return BookItem(
            id=book.id,
            curator_id=book.curator_id,
            title=book.title,
            author=book.author or "",
            publisher=book.publisher or "",
            publish_date=book.publish_date or "",
            page_count=book.page_count,
            notes=book.notes,
            isbn=book.isbn,
            availability=Availability(book.availability.value),
            cover_url=book.cover_url,
            created_at=book.created_at,
        )

    def _to_response_model(self, db_obj: BookDB) -> BookItem:
        return self.to_model(db_obj)

    def _curator_exists(self, curator_id: str) -> bool:
        curator = safe_query(
            self.session,
            lambda s: s.execute(
                select(CuratorDB.id).where(CuratorDB.id == curator_id)
            ).scalar_one_or_none(),
            "Failed to check curator",
        )
        return curator is not None

    def add_book(self, curator_id: str, data: BookCreateSchema) -> BookItem:
        """
        Add a book to a curator's catalog.

        Args:
            curator_id: Owning curator
            data: Book details (possibly pre-filled by the metadata enricher)

        Returns:
            The created book item, ``available``

        Raises:
            ValidationError: If the curator does not exist
            StorageError: On database errors
        """
        if not curator_id or not self._curator_exists(curator_id):
            raise ValidationError(f"Curator {curator_id!r} does not exist")

        book = BookDB(
            id=new_id("book"),
            curator_id=curator_id,
            title=data.title,
            author=data.author,
            publisher=data.publisher,
            publish_date=data.publish_date,
            page_count=data.page_count,
            notes=data.notes,
            isbn=data.isbn,
            availability=AvailabilityEnum.AVAILABLE,
            cover_url=data.cover_url,
            created_at=datetime.now(),
        )
        self.session.add(book)
        safe_commit(self.session, "add book")

        logger.info("Added book %s (%s) to curator %s", book.id, book.title, curator_id)
        return self.to_model(book)

    def get_book(self, book_id: str) -> BookItem:
        """
        Raises:
            NotFoundError: If the book does not exist
        """
        book = self.get_by_id(book_id)
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")
        return book

    def find_by_curator_and_isbn(self, curator_id: str, isbn: str) -> list[BookItem]:
        """
        Exact-match ISBN filter within one curator's catalog.

        Returns an empty list, not an error, when nothing matches.
        """
        normalized = normalize_isbn(isbn)
        query = (
            select(BookDB)
            .where(and_(BookDB.curator_id == curator_id, BookDB.isbn == normalized))
            .order_by(BookDB.created_at, BookDB.id)
            .execution_options(populate_existing=True)
        )
        results = safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to search books by ISBN",
        )
        return [self.to_model(book) for book in results]

    def list_books(self, curator_id: str) -> list[BookItem]:
        """A curator's whole catalog in creation order."""
        query = (
            select(BookDB)
            .where(BookDB.curator_id == curator_id)
            .order_by(BookDB.created_at, BookDB.id)
            .execution_options(populate_existing=True)
        )
        results = safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to list books",
        )
        return [self.to_model(book) for book in results]

    def search(self, curator_id: str, query_text: str) -> list[BookItem]:
        """Case-insensitive title/author substring search in one catalog."""
        escaped = query_text.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        term = f"%{escaped}%"
        query = (
            select(BookDB)
            .where(
                and_(
                    BookDB.curator_id == curator_id,
                    or_(
                        BookDB.title.ilike(term, escape="\\"),
                        BookDB.author.ilike(term, escape="\\"),
                    ),
                )
            )
            .order_by(BookDB.title)
            .execution_options(populate_existing=True)
        )
        results = safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to search books",
        )
        return [self.to_model(book) for book in results]
