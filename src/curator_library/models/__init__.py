"""Pydantic models for the Curator Library server."""

from .book import Availability, BookCreateSchema, BookItem, is_valid_isbn, normalize_isbn
from .curator import PUBLIC_NOTICE_MAX_LENGTH, Curator, CuratorCreateSchema
from .requests import (
    AcquisitionRequest,
    AcquisitionRequestCreateSchema,
    BorrowerContact,
    BorrowRequest,
    BorrowStatus,
    Decision,
)

__all__ = [
    "PUBLIC_NOTICE_MAX_LENGTH",
    "AcquisitionRequest",
    "AcquisitionRequestCreateSchema",
    "Availability",
    "BookCreateSchema",
    "BookItem",
    "BorrowRequest",
    "BorrowStatus",
    "BorrowerContact",
    "Curator",
    "CuratorCreateSchema",
    "Decision",
    "is_valid_isbn",
    "normalize_isbn",
]
