"""
Request ledger for the Curator Library server.

Append-only storage for acquisition requests and borrow requests, read back
per curator in insertion order. Borrow requests are appended by the lending
coordinator inside its own transaction; this module only builds the row.
"""

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..models.requests import (
    AcquisitionRequest,
    AcquisitionRequestCreateSchema,
    BorrowerContact,
    BorrowRequest,
    BorrowStatus,
)
from .book_repository import BookRepository
from .repository import NotFoundError, ValidationError, new_id
from .schema import AcquisitionRequest as AcquisitionDB
from .schema import BorrowRequest as BorrowDB
from .schema import BorrowStatusEnum
from .schema import Curator as CuratorDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)


def borrow_to_model(record: BorrowDB, include_book: bool = False) -> BorrowRequest:
    """Convert a borrow row, optionally joining the book as it is now."""
    return BorrowRequest(
        id=record.id,
        book_id=record.book_id,
        curator_id=record.curator_id,
        requester=record.requester or "",
        name=record.name,
        email=record.email,
        phone=record.phone or "",
        delivery_address=record.delivery_address,
        borrow_date=record.borrow_date,
        return_date=record.return_date,
        status=BorrowStatus(record.status.value),
        created_at=record.created_at,
        decided_at=record.decided_at,
        returned_at=record.returned_at,
        book=BookRepository.to_model(record.book) if include_book and record.book else None,
    )


class RequestLedger:
    """Append-only ledger of acquisition and borrow requests."""

    def __init__(self, session):
        self.session = session

    def new_borrow_record(
        self,
        book_id: str,
        curator_id: str,
        borrower: BorrowerContact,
        borrow_date: date,
        return_date: date,
    ) -> BorrowDB:
        """
        Stage a pending borrow request in the current transaction.

        The caller commits; the lending coordinator does so together with the
        availability transition.
        """
        record = BorrowDB(
            id=new_id("borrow"),
            book_id=book_id,
            curator_id=curator_id,
            requester=borrower.requester.strip(),
            name=borrower.name.strip(),
            email=borrower.email.strip(),
            phone=borrower.phone.strip(),
            delivery_address=borrower.delivery_address.strip(),
            borrow_date=borrow_date,
            return_date=return_date,
            status=BorrowStatusEnum.PENDING,
            created_at=datetime.now(),
        )
        self.session.add(record)
        return record

    def create_acquisition_request(self, data: AcquisitionRequestCreateSchema) -> AcquisitionRequest:
        """
        Record a borrower's suggestion that a curator acquire a title.

        Raises:
            ValidationError: If the title is blank or the curator does not exist
        """
        title = data.title.strip()
        if not title:
            raise ValidationError("Book title is required")

        curator = safe_query(
            self.session,
            lambda s: s.execute(
                select(CuratorDB.id).where(CuratorDB.id == data.curator_id)
            ).scalar_one_or_none(),
            "Failed to check curator",
        )
        if curator is None:
            raise ValidationError(f"Curator {data.curator_id!r} does not exist")

        record = AcquisitionDB(
            id=new_id("acq"),
            curator_id=data.curator_id,
            title=title,
            author=data.author.strip(),
            notes=data.notes,
            requester=data.requester.strip(),
            created_at=datetime.now(),
        )
        self.session.add(record)
        safe_commit(self.session, "create acquisition request")
        logger.info("Acquisition request %s for curator %s", record.id, data.curator_id)
        return AcquisitionRequest.model_validate(record, from_attributes=True)

    def list_acquisition_requests(self, curator_id: str) -> list[AcquisitionRequest]:
        query = (
            select(AcquisitionDB)
            .where(AcquisitionDB.curator_id == curator_id)
            .order_by(AcquisitionDB.created_at, AcquisitionDB.id)
        )
        results = safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to list acquisition requests",
        )
        return [AcquisitionRequest.model_validate(r, from_attributes=True) for r in results]

    def list_borrow_requests(self, curator_id: str) -> list[BorrowRequest]:
        """Borrow requests for a curator, each with the book as it is now."""
        query = (
            select(BorrowDB)
            .where(BorrowDB.curator_id == curator_id)
            .options(selectinload(BorrowDB.book))
            .order_by(BorrowDB.created_at, BorrowDB.id)
            .execution_options(populate_existing=True)
        )
        results = safe_query(
            self.session,
            lambda s: s.execute(query).scalars().all(),
            "Failed to list borrow requests",
        )
        return [borrow_to_model(r, include_book=True) for r in results]

    def get_borrow_request(self, borrow_request_id: str) -> BorrowRequest:
        """
        Raises:
            NotFoundError: If the request does not exist
        """
        query = (
            select(BorrowDB)
            .where(BorrowDB.id == borrow_request_id)
            .options(selectinload(BorrowDB.book))
            .execution_options(populate_existing=True)
        )
        record = safe_query(
            self.session,
            lambda s: s.execute(query).scalar_one_or_none(),
            "Failed to get borrow request",
        )
        if record is None:
            raise NotFoundError(f"Borrow request {borrow_request_id} not found")
        return borrow_to_model(record, include_book=True)
