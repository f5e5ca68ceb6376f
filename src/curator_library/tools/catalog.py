"""
Catalog tools for the Curator Library server.

1. search_books: ISBN search within a curator's catalog (200/400/404/500)
2. add_book: add a copy, optionally pre-filled by the metadata enricher
3. lookup_book_metadata: ISBN metadata and cover, gated on a complete ISBN-13
4. list_catalog: a curator's catalog, optionally filtered by title/author
5. get_book_details: one book item

Metadata is always fetched before a session is opened, never while a
store transaction or lending lock is held.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError

from ..database.book_repository import BookRepository
from ..database.curator_repository import CuratorRepository
from ..database.errors import RepositoryException
from ..database.session import get_session
from ..metadata import get_enricher, isbn_ready_for_lookup
from ..models.book import BookCreateSchema
from ..observability import trace_tool
from .responses import (
    error_response,
    invalid_input_response,
    repository_error_response,
    success_response,
    unexpected_error_response,
)

logger = logging.getLogger(__name__)


# =============================================================================
# SEARCH
# =============================================================================


class SearchBooksInput(BaseModel):
    """Input schema for the search_books tool."""

    curator_id: str | None = Field(default=None, description="Curator whose catalog to search")
    isbn: str | None = Field(
        default=None,
        description="Exact ISBN to match (hyphens allowed)",
        examples=["9780743273565", "978-0-7432-7356-5"],
    )


@trace_tool("search_books")
async def search_books_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Exact ISBN search; empty matches are a 404, not an error in the store."""
    try:
        params = SearchBooksInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "search")

    if not params.curator_id or not params.isbn:
        return error_response("Both curator_id and isbn are required", "validation", 400)

    try:
        with get_session() as session:
            books = BookRepository(session).find_by_curator_and_isbn(
                params.curator_id, params.isbn
            )
    except RepositoryException as e:
        return repository_error_response(e, "Book search")
    except Exception:
        return unexpected_error_response("search_books")

    if not books:
        return error_response("No books found matching the criteria", "not_found", 404)

    return success_response(
        f"Found {len(books)} book(s) with ISBN {params.isbn}",
        {"books": [book.model_dump(mode="json") for book in books]},
    )


# =============================================================================
# ADD BOOK
# =============================================================================


class AddBookInput(BaseModel):
    """
    Input schema for the add_book tool.

    Title may be omitted when an ISBN is given and the metadata source
    knows it.
    """

    curator_id: str = Field(..., min_length=1)
    title: str = Field(default="", max_length=500)
    author: str = Field(default="", max_length=300)
    publisher: str = Field(default="", max_length=300)
    publish_date: str = Field(default="", max_length=50)
    page_count: int | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=2000)
    isbn: str | None = Field(default=None, examples=["9780743273565"])
    cover_url: str | None = Field(default=None, max_length=500)
    fetch_metadata: bool = Field(
        default=True,
        description="Fill empty fields from the bibliographic source when an ISBN is given",
    )


@trace_tool("add_book")
async def add_book_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = AddBookInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "add book")

    fields = params.model_dump(exclude={"curator_id", "fetch_metadata"})

    # unknown curators are turned away before any metadata request goes out
    try:
        with get_session() as session:
            curator_known = CuratorRepository(session).exists(params.curator_id)
    except RepositoryException as e:
        return repository_error_response(e, "Add book")
    except Exception:
        return unexpected_error_response("add_book")
    if not curator_known:
        return error_response(
            f"Curator '{params.curator_id}' does not exist", "validation", 400
        )

    if params.fetch_metadata and params.isbn:
        metadata = await get_enricher().lookup(params.isbn)
        for name in ("title", "author", "publisher", "publish_date"):
            if not fields[name]:
                fields[name] = getattr(metadata, name)
        if fields["page_count"] is None:
            fields["page_count"] = metadata.page_count
        if not fields["cover_url"]:
            fields["cover_url"] = metadata.cover_url

    try:
        book_data = BookCreateSchema.model_validate(fields)
    except SchemaValidationError as e:
        return invalid_input_response(e, "add book")

    try:
        with get_session() as session:
            book = BookRepository(session).add_book(params.curator_id, book_data)
    except RepositoryException as e:
        return repository_error_response(e, "Add book")
    except Exception:
        return unexpected_error_response("add_book")

    return success_response(
        f"'{book.title}' has been added to the catalog",
        {"book": book.model_dump(mode="json")},
        status=201,
    )


# =============================================================================
# METADATA LOOKUP
# =============================================================================


class LookupMetadataInput(BaseModel):
    """Input schema for the lookup_book_metadata tool."""

    isbn: str = Field(default="", description="ISBN as typed so far")


@trace_tool("lookup_book_metadata")
async def lookup_book_metadata_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Partial input never reaches the network; unknown ISBNs degrade, never fail."""
    try:
        params = LookupMetadataInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "metadata lookup")

    if not isbn_ready_for_lookup(params.isbn):
        return error_response(
            "Enter a complete 13-digit ISBN to look up book details", "validation", 400
        )

    metadata = await get_enricher().lookup(params.isbn)
    if metadata.found:
        message = f"Found '{metadata.title}'"
    else:
        message = "No details found for this ISBN; enter them manually"

    return success_response(message, {"metadata": metadata.model_dump(mode="json")})


# =============================================================================
# BROWSING
# =============================================================================


class ListCatalogInput(BaseModel):
    """Input schema for the list_catalog tool."""

    curator_id: str = Field(..., min_length=1)
    query: str | None = Field(
        default=None,
        description="Optional title/author filter (case-insensitive substring)",
        max_length=200,
    )


@trace_tool("list_catalog")
async def list_catalog_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = ListCatalogInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "catalog")

    try:
        with get_session() as session:
            repo = BookRepository(session)
            if params.query and params.query.strip():
                books = repo.search(params.curator_id, params.query)
            else:
                books = repo.list_books(params.curator_id)
    except RepositoryException as e:
        return repository_error_response(e, "List catalog")
    except Exception:
        return unexpected_error_response("list_catalog")

    return success_response(
        f"{len(books)} book(s) in catalog",
        {"books": [book.model_dump(mode="json") for book in books]},
    )


class GetBookInput(BaseModel):
    book_id: str = Field(..., min_length=1)


@trace_tool("get_book_details")
async def get_book_details_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = GetBookInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "book details")

    try:
        with get_session() as session:
            book = BookRepository(session).get_book(params.book_id)
    except RepositoryException as e:
        return repository_error_response(e, "Get book")
    except Exception:
        return unexpected_error_response("get_book_details")

    return success_response(
        f"'{book.title}' is {book.availability.value}",
        {"book": book.model_dump(mode="json")},
    )


# =============================================================================
# TOOL REGISTRATION
# =============================================================================

search_books = {
    "name": "search_books",
    "description": (
        "Find books in a curator's catalog by exact ISBN. Returns 404 when nothing "
        "matches and 400 when curator_id or isbn is missing."
    ),
    "inputSchema": SearchBooksInput.model_json_schema(),
    "handler": search_books_handler,
}

add_book = {
    "name": "add_book",
    "description": (
        "Add a book to a curator's catalog. With an ISBN, empty fields are filled from "
        "the bibliographic source; the book starts out available."
    ),
    "inputSchema": AddBookInput.model_json_schema(),
    "handler": add_book_handler,
}

lookup_book_metadata = {
    "name": "lookup_book_metadata",
    "description": (
        "Look up title, author, publisher and cover for a complete 13-digit ISBN. "
        "Unknown ISBNs return empty details rather than an error."
    ),
    "inputSchema": LookupMetadataInput.model_json_schema(),
    "handler": lookup_book_metadata_handler,
}

list_catalog = {
    "name": "list_catalog",
    "description": "List a curator's books, optionally filtered by title or author.",
    "inputSchema": ListCatalogInput.model_json_schema(),
    "handler": list_catalog_handler,
}

get_book_details = {
    "name": "get_book_details",
    "description": "Get one book item including its current availability.",
    "inputSchema": GetBookInput.model_json_schema(),
    "handler": get_book_details_handler,
}
