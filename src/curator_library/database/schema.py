"""
SQLAlchemy database schema for the Curator Library server.

These tables are the transactional record store behind the catalog store,
the request ledger and the lending coordinator. ``books.availability`` is the
single piece of contended state; it is only ever written through a
compare-and-swap UPDATE issued by the lending coordinator.
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class AvailabilityEnum(str, enum.Enum):
    """Database enum for book availability."""

    AVAILABLE = "available"
    REQUESTED = "requested"
    ON_LOAN = "on_loan"


class BorrowStatusEnum(str, enum.Enum):
    """Database enum for borrow request status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"


class Curator(Base):
    """Curators table - owners of book catalogs."""

    __tablename__ = "curators"

    id = Column(String(50), primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    country = Column(String(100), nullable=False, default="")
    state = Column(String(100), nullable=False, default="")
    city = Column(String(100), nullable=False, default="")
    public_notice = Column(String(200), nullable=False, default="")
    notice_version = Column(Integer, nullable=False, default=0)
    cover_image = Column(String(500), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    books = relationship("Book", back_populates="curator", order_by="Book.created_at")

    __table_args__ = (
        CheckConstraint("id LIKE 'curator_%'", name="check_curator_id_format"),
        CheckConstraint("length(public_notice) <= 200", name="check_public_notice_length"),
    )


class Book(Base):
    """
    Books table - one row per loanable copy.

    Rows are never hard-deleted; availability cycles
    available -> requested -> on_loan -> available.
    """

    __tablename__ = "books"

    id = Column(String(50), primary_key=True)
    curator_id = Column(String(50), ForeignKey("curators.id"), nullable=False)
    title = Column(String(500), nullable=False)
    author = Column(String(300), nullable=False, default="")
    publisher = Column(String(300), nullable=False, default="")
    publish_date = Column(String(50), nullable=False, default="")
    page_count = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    isbn = Column(String(13), nullable=True)
    availability = Column(
        Enum(AvailabilityEnum), nullable=False, default=AvailabilityEnum.AVAILABLE
    )
    cover_url = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, default=func.now(), onupdate=func.now())

    curator = relationship("Curator", back_populates="books")
    borrow_requests = relationship("BorrowRequest", back_populates="book")

    __table_args__ = (
        Index("idx_book_curator", "curator_id"),
        Index("idx_book_curator_isbn", "curator_id", "isbn"),
        Index("idx_book_title", "title"),
        CheckConstraint("id LIKE 'book_%'", name="check_book_id_format"),
        CheckConstraint("page_count IS NULL OR page_count >= 0", name="check_page_count"),
    )


class AcquisitionRequest(Base):
    """Acquisition requests table - append-only wishlist entries."""

    __tablename__ = "acquisition_requests"

    id = Column(String(50), primary_key=True)
    # weak reference: no ownership transfer until a book is actually created
    curator_id = Column(String(50), ForeignKey("curators.id"), nullable=False)
    title = Column(String(500), nullable=False)
    author = Column(String(300), nullable=False, default="")
    notes = Column(Text, nullable=True)
    requester = Column(String(200), nullable=False, default="")

    created_at = Column(DateTime, nullable=False, default=func.now())

    __table_args__ = (
        Index("idx_acquisition_curator", "curator_id"),
        CheckConstraint("id LIKE 'acq_%'", name="check_acquisition_id_format"),
    )


class BorrowRequest(Base):
    """Borrow requests table - append-only, status updated by the coordinator."""

    __tablename__ = "borrow_requests"

    id = Column(String(50), primary_key=True)
    book_id = Column(String(50), ForeignKey("books.id"), nullable=False)
    curator_id = Column(String(50), ForeignKey("curators.id"), nullable=False)
    requester = Column(String(200), nullable=False, default="")
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False, default="")
    delivery_address = Column(Text, nullable=False)
    borrow_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=False)
    status = Column(Enum(BorrowStatusEnum), nullable=False, default=BorrowStatusEnum.PENDING)
    decided_at = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    book = relationship("Book", back_populates="borrow_requests")

    __table_args__ = (
        Index("idx_borrow_curator", "curator_id"),
        Index("idx_borrow_book_status", "book_id", "status"),
        CheckConstraint("id LIKE 'borrow_%'", name="check_borrow_id_format"),
        CheckConstraint("return_date > borrow_date", name="check_return_after_borrow"),
    )
