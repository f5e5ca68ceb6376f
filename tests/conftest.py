"""Test configuration and fixtures for the Curator Library server.

Every test gets its own SQLite file, so sessions opened from worker
threads see the same data the test seeded.
"""

import os
from collections.abc import Generator
from pathlib import Path

import logfire
import pytest
from sqlalchemy.orm import Session

from curator_library.config import ServerConfig, reset_config, set_config
from curator_library.database.book_repository import BookRepository
from curator_library.database.curator_repository import CuratorRepository
from curator_library.database.session import DatabaseManager, set_db_manager
from curator_library.metadata import set_enricher
from curator_library.models import BookCreateSchema, BookItem, Curator, CuratorCreateSchema

GATSBY_ISBN = "9780743273565"


@pytest.fixture(scope="session", autouse=True)
def _quiet_logfire() -> None:
    """Spans and metrics stay local during tests."""
    logfire.configure(send_to_logfire=False, console=False)


# === Configuration Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test_curator_library.db"


@pytest.fixture
def test_config(test_db_path: Path) -> Generator[ServerConfig, None, None]:
    """Isolated configuration installed as the process-wide config."""
    reset_config()

    config = ServerConfig(
        server_name="test-curator-library",
        server_version="0.0.1-test",
        database_path=test_db_path,
        metadata_base_url="https://metadata.test",
        cover_base_url="https://covers.test",
        metadata_timeout_seconds=1.0,
        lock_timeout_seconds=5.0,
        debug=True,
        log_level="DEBUG",
        observability_enabled=False,
    )
    set_config(config)

    yield config

    reset_config()


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Environment without CURATOR_LIBRARY_* variables."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("CURATOR_LIBRARY_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


# === Database Fixtures ===


@pytest.fixture
def db_manager(test_config: ServerConfig) -> Generator[DatabaseManager, None, None]:
    """Fresh schema, installed as the global manager used by the tools."""
    manager = DatabaseManager(test_config.get_database_url())
    manager.init_database()
    set_db_manager(manager)

    yield manager

    set_db_manager(None)
    manager.close()


@pytest.fixture
def db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    session = db_manager.create_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def _reset_enricher() -> Generator[None, None, None]:
    yield
    set_enricher(None)


# === Seed Data ===


@pytest.fixture
def curator(db_session: Session) -> Curator:
    return CuratorRepository(db_session).create_curator(
        CuratorCreateSchema(
            name="Riverside Book Circle",
            description="Neighbourhood lending shelf",
            country="Portugal",
            city="Lisbon",
        )
    )


@pytest.fixture
def other_curator(db_session: Session) -> Curator:
    return CuratorRepository(db_session).create_curator(
        CuratorCreateSchema(name="Hillside Reading Room", country="Portugal", city="Porto")
    )


@pytest.fixture
def book(db_session: Session, curator: Curator) -> BookItem:
    return BookRepository(db_session).add_book(
        curator.id,
        BookCreateSchema(
            title="The Great Gatsby",
            author="F. Scott Fitzgerald",
            publisher="Scribner",
            isbn=GATSBY_ISBN,
        ),
    )
