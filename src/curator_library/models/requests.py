"""
Request models for the Curator Library server.

Two kinds of borrower-initiated records are kept in the request ledger:
- AcquisitionRequest: a suggestion that a curator add a title they do not own
- BorrowRequest: a request to take a specific owned book item for a date range

Borrow request status moves only through the lending coordinator:
pending -> approved -> returned, or pending -> rejected.
"""

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .book import BookItem


class BorrowStatus(str, Enum):
    """Status of a borrow request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"

    @property
    def is_active(self) -> bool:
        """Active requests hold the book; at most one may exist per book."""
        return self in (BorrowStatus.PENDING, BorrowStatus.APPROVED)


class Decision(str, Enum):
    """Curator decision on a pending borrow request."""

    APPROVE = "approve"
    REJECT = "reject"


class BorrowerContact(BaseModel):
    """How to reach the borrower and where to deliver the book.

    Emptiness is checked by the lending coordinator so that a missing field
    is reported as a validation failure rather than a parsing error.
    """

    requester: str = Field(default="", description="Wallet or identity string of the borrower")
    name: str = ""
    email: str = ""
    phone: str = ""
    delivery_address: str = Field(default="", description="Opaque delivery address text")


class AcquisitionRequest(BaseModel):
    """A borrower's suggestion that a curator acquire a title."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., pattern=r"^acq_[a-f0-9]{12}$")
    curator_id: str
    title: str = Field(..., min_length=1, max_length=500)
    author: str = ""
    notes: str | None = None
    requester: str = ""
    created_at: datetime = Field(default_factory=datetime.now)


class AcquisitionRequestCreateSchema(BaseModel):
    """Data for a new acquisition request."""

    curator_id: str
    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(default="", max_length=300)
    notes: str | None = Field(default=None, max_length=2000)
    requester: str = Field(default="", max_length=200)


class BorrowRequest(BaseModel):
    """
    A borrower's request for one book item.

    ``book`` carries the book as it looks when the request is read, not as
    it looked when the request was made.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., pattern=r"^borrow_[a-f0-9]{12}$")
    book_id: str
    curator_id: str
    requester: str = ""
    name: str
    email: str
    phone: str = ""
    delivery_address: str
    borrow_date: date
    return_date: date
    status: BorrowStatus = BorrowStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)
    decided_at: datetime | None = None
    returned_at: datetime | None = None
    book: BookItem | None = None

    @property
    def loan_period_days(self) -> int:
        return (self.return_date - self.borrow_date).days
