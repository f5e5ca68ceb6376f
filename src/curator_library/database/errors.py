"""
Error taxonomy for catalog, ledger and lending operations.

Each class maps to a distinct borrower-facing path:
- ValidationError: fix your input
- ConflictError: this book is no longer available
- NotFoundError: unknown identifier
- InvalidStateError: the request is not in a state that allows the operation
- StorageError: try again later
"""


class RepositoryException(Exception):
    """Base exception for repository operations."""


class ValidationError(RepositoryException):
    """Raised for malformed or missing input; never retried automatically."""


class ConflictError(RepositoryException):
    """Raised when an availability race is lost or a version check fails."""


class NotFoundError(RepositoryException):
    """Raised when an entity is not found."""


class InvalidStateError(RepositoryException):
    """Raised when a record's status does not permit the operation."""


class StorageError(RepositoryException):
    """Raised when the record store is unavailable; fatal to the operation."""
