"""Tests for the catalog store (BookRepository)."""

import pytest

from curator_library.database import BookRepository, NotFoundError, ValidationError
from curator_library.models import Availability, BookCreateSchema

GATSBY_ISBN = "9780743273565"


class TestAddBook:
    def test_new_book_is_available(self, db_session, curator):
        book = BookRepository(db_session).add_book(
            curator.id, BookCreateSchema(title="Dune", author="Frank Herbert")
        )

        assert book.id.startswith("book_")
        assert book.curator_id == curator.id
        assert book.availability == Availability.AVAILABLE
        assert book.isbn is None

    def test_unknown_curator_rejected(self, db_session):
        repo = BookRepository(db_session)

        with pytest.raises(ValidationError, match="does not exist"):
            repo.add_book("curator_000000000000", BookCreateSchema(title="Dune"))

    def test_isbn_stored_normalized(self, db_session, curator):
        book = BookRepository(db_session).add_book(
            curator.id, BookCreateSchema(title="Gatsby", isbn="978-0-7432-7356-5")
        )

        assert book.isbn == GATSBY_ISBN


class TestLookup:
    def test_get_book(self, db_session, book):
        found = BookRepository(db_session).get_book(book.id)

        assert found.title == "The Great Gatsby"
        assert found.publisher == "Scribner"

    def test_get_missing_book(self, db_session):
        with pytest.raises(NotFoundError):
            BookRepository(db_session).get_book("book_000000000000")

    def test_find_by_isbn_matches_hyphenated_input(self, db_session, curator, book):
        results = BookRepository(db_session).find_by_curator_and_isbn(
            curator.id, "978-0-7432-7356-5"
        )

        assert [b.id for b in results] == [book.id]

    def test_find_by_isbn_returns_every_copy(self, db_session, curator, book):
        repo = BookRepository(db_session)
        second = repo.add_book(
            curator.id, BookCreateSchema(title="The Great Gatsby", isbn=GATSBY_ISBN)
        )

        results = repo.find_by_curator_and_isbn(curator.id, GATSBY_ISBN)

        assert [b.id for b in results] == [book.id, second.id]

    def test_find_by_isbn_is_scoped_to_curator(self, db_session, other_curator, book):
        results = BookRepository(db_session).find_by_curator_and_isbn(
            other_curator.id, GATSBY_ISBN
        )

        assert results == []

    def test_find_by_isbn_no_match_is_empty(self, db_session, curator, book):
        assert BookRepository(db_session).find_by_curator_and_isbn(curator.id, "9780000000000") == []


class TestListing:
    def test_list_in_insertion_order(self, db_session, curator):
        repo = BookRepository(db_session)
        titles = ["Zorba the Greek", "Anna Karenina", "Middlemarch"]
        for title in titles:
            repo.add_book(curator.id, BookCreateSchema(title=title))

        assert [b.title for b in repo.list_books(curator.id)] == titles

    def test_list_empty_catalog(self, db_session, curator):
        assert BookRepository(db_session).list_books(curator.id) == []

    def test_search_title_and_author(self, db_session, curator, book):
        repo = BookRepository(db_session)
        repo.add_book(curator.id, BookCreateSchema(title="Tender Is the Night", author="F. Scott Fitzgerald"))
        repo.add_book(curator.id, BookCreateSchema(title="Dune", author="Frank Herbert"))

        by_author = repo.search(curator.id, "fitzgerald")
        by_title = repo.search(curator.id, "DUNE")

        assert {b.title for b in by_author} == {"The Great Gatsby", "Tender Is the Night"}
        assert [b.title for b in by_title] == ["Dune"]

    def test_search_wildcards_match_literally(self, db_session, curator, book):
        repo = BookRepository(db_session)
        repo.add_book(curator.id, BookCreateSchema(title="100% Wolf", author="Jayne Lyons"))
        repo.add_book(curator.id, BookCreateSchema(title="snake_case Recipes"))

        assert [b.title for b in repo.search(curator.id, "%")] == ["100% Wolf"]
        assert [b.title for b in repo.search(curator.id, "_")] == ["snake_case Recipes"]
        assert repo.search(curator.id, "G_tsby") == []
        assert repo.search(curator.id, "\\") == []
