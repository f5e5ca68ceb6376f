"""
Curator model for the Curator Library server.

A curator owns a catalog of book items and decides on borrow requests.
The public notice is a short free-text message shown on the curator's page.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .book import BookItem

PUBLIC_NOTICE_MAX_LENGTH = 200


class Curator(BaseModel):
    """Represents a curator and, optionally, the books they own."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(
        ...,
        description="Unique identifier for the curator",
        pattern=r"^curator_[a-f0-9]{12}$",
        examples=["curator_0a1b2c3d4e5f"],
    )

    name: str = Field(..., min_length=1, max_length=200)

    description: str | None = Field(default=None, max_length=2000)

    country: str = Field(default="", max_length=100)
    state: str = Field(default="", max_length=100)
    city: str = Field(default="", max_length=100)

    public_notice: str = Field(default="", max_length=PUBLIC_NOTICE_MAX_LENGTH)

    notice_version: int = Field(
        default=0,
        description="Incremented on every public notice update",
        ge=0,
    )

    cover_image: str | None = Field(default=None, max_length=500)

    is_verified: bool = False

    created_at: datetime = Field(default_factory=datetime.now)

    books: list[BookItem] = Field(default_factory=list)

    @property
    def location(self) -> str:
        return ", ".join(part for part in (self.city, self.state, self.country) if part)


class CuratorCreateSchema(BaseModel):
    """Data needed to register a curator."""

    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    country: str = Field(default="", max_length=100)
    state: str = Field(default="", max_length=100)
    city: str = Field(default="", max_length=100)
    public_notice: str = Field(default="", max_length=PUBLIC_NOTICE_MAX_LENGTH)
    cover_image: str | None = Field(default=None, max_length=500)
    is_verified: bool = False
