"""
Database package for the Curator Library server.

- schema.py: SQLAlchemy tables (the transactional record store)
- session.py: engine, sessions and store-failure translation
- book_repository.py: the catalog store
- curator_repository.py: curators and their public notice
- request_ledger.py: acquisition and borrow request ledger
- lending_coordinator.py: the availability state machine
"""

from .book_repository import BookRepository
from .curator_repository import CuratorRepository, validate_public_notice
from .errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RepositoryException,
    StorageError,
    ValidationError,
)
from .lending_coordinator import BookLockRegistry, LendingCoordinator, book_locks
from .request_ledger import RequestLedger
from .schema import (
    AcquisitionRequest,
    AvailabilityEnum,
    Base,
    Book,
    BorrowRequest,
    BorrowStatusEnum,
    Curator,
)
from .session import (
    DatabaseManager,
    get_db_manager,
    get_session,
    safe_commit,
    safe_query,
    session_scope,
    set_db_manager,
)

__all__ = [
    "AcquisitionRequest",
    "AvailabilityEnum",
    "Base",
    "Book",
    "BookLockRegistry",
    "BookRepository",
    "BorrowRequest",
    "BorrowStatusEnum",
    "ConflictError",
    "Curator",
    "CuratorRepository",
    "DatabaseManager",
    "InvalidStateError",
    "LendingCoordinator",
    "NotFoundError",
    "RepositoryException",
    "RequestLedger",
    "StorageError",
    "ValidationError",
    "book_locks",
    "get_db_manager",
    "get_session",
    "safe_commit",
    "safe_query",
    "session_scope",
    "set_db_manager",
    "validate_public_notice",
]
