"""
Response helpers shared by all Curator Library tools.

Every tool returns the same MCP result shape so a boundary layer (HTTP
handler, CLI, chat UI) can render its own notification:

    {"status": 200, "content": [{"type": "text", "text": ...}], "data": {...}}
    {"isError": True, "status": 409, "errorType": "conflict", "content": [...]}

``errorType`` keeps the borrower-facing paths apart: ``validation`` (fix
your input), ``conflict`` (no longer available), ``internal`` (try again
later), plus ``not_found`` and ``invalid_state``.
"""

import logging
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from ..database.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RepositoryException,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_ERROR_KINDS: list[tuple[type[RepositoryException], str, int]] = [
    (ValidationError, "validation", 400),
    (NotFoundError, "not_found", 404),
    (ConflictError, "conflict", 409),
    (InvalidStateError, "invalid_state", 409),
    (StorageError, "internal", 500),
]


def success_response(message: str, data: dict[str, Any], status: int = 200) -> dict[str, Any]:
    return {
        "status": status,
        "content": [{"type": "text", "text": message}],
        "data": data,
    }


def error_response(message: str, error_type: str, status: int) -> dict[str, Any]:
    return {
        "isError": True,
        "status": status,
        "errorType": error_type,
        "content": [{"type": "text", "text": message}],
    }


def invalid_input_response(error: SchemaValidationError, operation: str) -> dict[str, Any]:
    """Turn a pydantic input error into a ``validation`` response."""
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
        for err in error.errors()
    )
    logger.info("Invalid %s parameters: %s", operation, problems)
    return error_response(f"Invalid {operation} parameters: {problems}", "validation", 400)


def repository_error_response(error: RepositoryException, operation: str) -> dict[str, Any]:
    """Map a repository exception onto its error type and status."""
    for exc_type, error_type, status in _ERROR_KINDS:
        if isinstance(error, exc_type):
            if status >= 500:
                logger.error("%s failed: %s", operation, error)
                return error_response(
                    f"{operation} failed due to a storage problem; please try again later",
                    error_type,
                    status,
                )
            logger.info("%s rejected (%s): %s", operation, error_type, error)
            return error_response(str(error), error_type, status)

    logger.error("%s failed: %s", operation, error)
    return error_response(f"{operation} failed: {error}", "internal", 500)


def unexpected_error_response(operation: str) -> dict[str, Any]:
    """Catch-all so a tool never crashes the server; call from an except block."""
    logger.exception("Unexpected error in %s", operation)
    return error_response(
        f"An unexpected error occurred during {operation}; please try again later",
        "internal",
        500,
    )
