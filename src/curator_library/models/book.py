"""
Book item model for the Curator Library server.

A BookItem is one physical, loanable copy owned by a curator. Its
``availability`` moves only through the lending coordinator:

    available --submit--> requested --approve--> on_loan --return--> available
                              \\--reject--> available
"""

import re
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

ISBN_PATTERN = re.compile(r"^\d{10,13}$")


class Availability(str, Enum):
    """Lending status of a book item."""

    AVAILABLE = "available"
    REQUESTED = "requested"
    ON_LOAN = "on_loan"


def normalize_isbn(value: str) -> str:
    """Strip hyphens and whitespace from an ISBN as typed by a curator."""
    return re.sub(r"[\s-]+", "", value)


def is_valid_isbn(value: str) -> bool:
    return bool(ISBN_PATTERN.match(normalize_isbn(value)))


class BookItem(BaseModel):
    """
    Represents one loanable copy in a curator's catalog.

    Returned by the catalog store and embedded (as a read-time snapshot) in
    borrow request listings.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(
        ...,
        description="Unique identifier for the book item",
        pattern=r"^book_[a-f0-9]{12}$",
        examples=["book_3f9a1c2b7d4e"],
    )

    curator_id: str = Field(..., description="Curator that owns this copy")

    title: str = Field(..., min_length=1, max_length=500)

    author: str = Field(default="", max_length=300)

    publisher: str = Field(default="", max_length=300)

    publish_date: str = Field(
        default="",
        description="Publication date as reported by the source (free-form)",
        max_length=50,
        examples=["1925", "April 10, 1925"],
    )

    page_count: int | None = Field(default=None, ge=0)

    notes: str | None = Field(default=None, max_length=2000)

    isbn: str | None = Field(
        default=None,
        description="ISBN-10 or ISBN-13 without separators",
        pattern=r"^\d{10,13}$",
        examples=["9780743273565", "0743273567"],
    )

    availability: Availability = Field(default=Availability.AVAILABLE)

    cover_url: str | None = Field(default=None, max_length=500)

    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_available(self) -> bool:
        return self.availability == Availability.AVAILABLE


class BookCreateSchema(BaseModel):
    """
    Data a curator supplies when adding a book.

    Availability, identifier and creation time are assigned by the catalog
    store and are deliberately absent here.
    """

    title: str = Field(..., min_length=1, max_length=500)
    author: str = Field(default="", max_length=300)
    publisher: str = Field(default="", max_length=300)
    publish_date: str = Field(default="", max_length=50)
    page_count: int | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=2000)
    isbn: str | None = Field(default=None)
    cover_url: str | None = Field(default=None, max_length=500)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Book title is required")
        return v

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        normalized = normalize_isbn(v)
        if not ISBN_PATTERN.match(normalized):
            raise ValueError("ISBN must be a 10-13 digit numeric string")
        return normalized
