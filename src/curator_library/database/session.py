"""
Database session management for the Curator Library server.

Sessions are short-lived and request-scoped: every tool call opens its own
session, and nothing about a caller survives between calls. Each session
holds its own pooled connection so that concurrent lending operations run in
separate transactions.
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .errors import StorageError
from .schema import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

# seconds sqlite waits on a locked database before raising
SQLITE_BUSY_TIMEOUT = 30


class DatabaseManager:
    """
    Manages the engine and session factory for the record store.

    File-backed SQLite uses a regular connection pool so concurrent sessions
    get distinct connections; ``sqlite://`` in-memory databases share one
    connection through ``StaticPool``.
    """

    def __init__(self, database_url: str | None = None):
        if database_url is None:
            database_url = get_config().get_database_url()
            logger.info("Using SQLite database at: %s", database_url)

        self.database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            if self.database_url in ("sqlite://", "sqlite:///:memory:"):
                self._engine = create_engine(
                    self.database_url,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            elif self.database_url.startswith("sqlite"):
                self._engine = create_engine(
                    self.database_url,
                    connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
                    pool_size=10,
                    max_overflow=20,
                )
            else:
                self._engine = create_engine(
                    self.database_url,
                    pool_size=10,
                    max_overflow=20,
                    pool_pre_ping=True,
                )

            if self.database_url.startswith("sqlite"):

                @event.listens_for(self._engine, "connect")
                def set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ARG001
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.close()

            logger.info("Database engine created: %s", self._engine.url)

        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def create_session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope for database operations.

        Yields:
            Database session, committed on success and rolled back on error
        """
        session = self.create_session()
        try:
            yield session
            session.commit()
        except Exception:
            logger.exception("Database error, rolling back")
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self, drop_existing: bool = False) -> None:
        if drop_existing:
            logger.warning("Dropping all existing tables...")
            Base.metadata.drop_all(bind=self.engine)

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database initialization complete")

    def verify_connection(self) -> bool:
        """Health check used at server start."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database connection failed")
            return False

    def close(self) -> None:
        if self._engine:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._engine = None
        self._session_factory = None


_db_manager: DatabaseManager | None = None


def get_db_manager(database_url: str | None = None) -> DatabaseManager:
    """
    Get the global database manager instance.

    Args:
        database_url: Database URL (only used on first call)
    """
    global _db_manager  # noqa: PLW0603

    if _db_manager is None:
        _db_manager = DatabaseManager(database_url)

    return _db_manager


def set_db_manager(manager: DatabaseManager | None) -> None:
    """Replace the global database manager (tests and embedding hosts)."""
    global _db_manager  # noqa: PLW0603
    _db_manager = manager


def get_session() -> Session:
    """
    Get a new database session.

    Callers own the session and must close it, normally with ``with``.
    """
    return get_db_manager().create_session()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    with get_db_manager().session_scope() as session:
        yield session


def safe_commit(session: Session, operation: str) -> None:
    """
    Commit a session, converting store failures into ``StorageError``.

    Raises:
        StorageError: If the commit fails; the session is rolled back
    """
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Commit failed during %s", operation)
        raise StorageError(f"Database operation '{operation}' failed") from e


def safe_query(session: Session, query_func: Callable[[Session], T], error_msg: str) -> T:
    """
    Execute a query, converting store failures into ``StorageError``.

    Raises:
        StorageError: If the query fails
    """
    try:
        return query_func(session)
    except SQLAlchemyError as e:
        logger.exception("Query failed")
        raise StorageError(f"{error_msg}: database query failed") from e
