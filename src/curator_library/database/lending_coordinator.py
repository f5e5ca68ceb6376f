"""
Lending coordinator for the Curator Library server.

This is the only writer of ``books.availability`` and of borrow request
status. Every operation is a read-modify-write on a single book and runs:

1. inside the per-book lock from ``BookLockRegistry`` (serializes callers
   within this process, whatever threads or tasks they come from), and
2. as compare-and-swap UPDATEs whose rowcounts are checked before commit
   (serializes callers across processes sharing the store).

The availability transition and the ledger change commit together or not
at all. Two concurrent submissions against one available book therefore
produce exactly one pending request and one ``ConflictError``.

State machine per book:

    available --submit--> requested --approve--> on_loan --return--> available
                              \\--reject--> available
"""

import logging
import threading
from collections.abc import Generator
from contextlib import contextmanager
from datetime import date, datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..config import get_config
from ..models.requests import BorrowerContact, BorrowRequest, Decision
from ..observability import record_lending_event
from .repository import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from .request_ledger import RequestLedger, borrow_to_model
from .schema import AvailabilityEnum
from .schema import Book as BookDB
from .schema import BorrowRequest as BorrowDB
from .schema import BorrowStatusEnum
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)


class BookLockRegistry:
    """Thread-safe map of book id to the lock guarding its availability."""

    def __init__(self):
        self._lock = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, book_id: str) -> threading.Lock:
        with self._lock:
            lock = self._locks.get(book_id)
            if lock is None:
                lock = self._locks[book_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, book_id: str, timeout: float) -> Generator[None, None, None]:
        """
        Hold the exclusive region for one book.

        Raises:
            StorageError: If the lock is not acquired within ``timeout`` seconds
        """
        lock = self._lock_for(book_id)
        if not lock.acquire(timeout=timeout):
            raise StorageError(f"Timed out waiting for exclusive access to book {book_id}")
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._lock:
            return len(self._locks)


# one registry per process; books never contend across curators, so there
# is no coarser lock
book_locks = BookLockRegistry()


def validate_submission(borrower: BorrowerContact, borrow_date: date, return_date: date) -> None:
    """
    Check a borrow submission before anything is read or written.

    Raises:
        ValidationError: On missing contact fields or an empty date range
    """
    missing = [
        label
        for label, value in (
            ("name", borrower.name),
            ("email", borrower.email),
            ("delivery address", borrower.delivery_address),
        )
        if not value or not value.strip()
    ]
    if missing:
        raise ValidationError(f"Borrower {', '.join(missing)} required")

    if return_date <= borrow_date:
        raise ValidationError("Return date must be after the borrow date")


class LendingCoordinator:
    """
    Serializes availability-affecting operations on book items.

    Errors are raised, never retried: a lost race is a ``ConflictError`` the
    caller may answer by choosing another book.
    """

    def __init__(self, session: Session, locks: BookLockRegistry | None = None):
        self.session = session
        self.ledger = RequestLedger(session)
        self.locks = locks or book_locks
        self.lock_timeout = get_config().lock_timeout_seconds

    def _load_book(self, book_id: str) -> BookDB:
        book = safe_query(
            self.session,
            lambda s: s.execute(
                select(BookDB)
                .where(BookDB.id == book_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none(),
            "Failed to get book",
        )
        if book is None:
            raise NotFoundError(f"Book {book_id} not found")
        return book

    def _load_request(self, borrow_request_id: str) -> BorrowDB:
        record = safe_query(
            self.session,
            lambda s: s.execute(
                select(BorrowDB)
                .where(BorrowDB.id == borrow_request_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none(),
            "Failed to get borrow request",
        )
        if record is None:
            raise NotFoundError(f"Borrow request {borrow_request_id} not found")
        return record

    def _swap_availability(
        self, book_id: str, expected: AvailabilityEnum, new: AvailabilityEnum
    ) -> bool:
        stmt = (
            update(BookDB)
            .where(BookDB.id == book_id, BookDB.availability == expected)
            .values(availability=new, updated_at=datetime.now())
        )
        result = safe_query(self.session, lambda s: s.execute(stmt), "Failed to update book")
        return result.rowcount == 1

    def _swap_status(
        self, borrow_request_id: str, expected: BorrowStatusEnum, new: BorrowStatusEnum, **values
    ) -> bool:
        stmt = (
            update(BorrowDB)
            .where(BorrowDB.id == borrow_request_id, BorrowDB.status == expected)
            .values(status=new, updated_at=datetime.now(), **values)
        )
        result = safe_query(
            self.session, lambda s: s.execute(stmt), "Failed to update borrow request"
        )
        return result.rowcount == 1

    def submit_borrow_request(
        self,
        book_id: str,
        borrower: BorrowerContact,
        borrow_date: date,
        return_date: date,
        curator_id: str | None = None,
    ) -> BorrowRequest:
        """
        Request an available book; it becomes ``requested`` with a pending request.

        Args:
            book_id: Book being requested
            borrower: Contact and delivery details
            borrow_date: First day of the loan
            return_date: Day the book comes back, strictly after ``borrow_date``
            curator_id: If given, must own the book

        Returns:
            The pending borrow request

        Raises:
            ValidationError: Bad contact details, dates or curator (no state change)
            NotFoundError: Unknown book
            ConflictError: The book is not available
            StorageError: The store failed
        """
        validate_submission(borrower, borrow_date, return_date)

        # unknown ids must not leave an entry in the lock registry
        self._load_book(book_id)

        with self.locks.hold(book_id, self.lock_timeout):
            try:
                book = self._load_book(book_id)
                if curator_id is not None and book.curator_id != curator_id:
                    raise ValidationError(f"Book {book_id} does not belong to curator {curator_id}")

                if book.availability != AvailabilityEnum.AVAILABLE:
                    raise ConflictError(f"Book '{book.title}' is no longer available")

                if not self._swap_availability(
                    book_id, AvailabilityEnum.AVAILABLE, AvailabilityEnum.REQUESTED
                ):
                    raise ConflictError(f"Book '{book.title}' is no longer available")

                record = self.ledger.new_borrow_record(
                    book_id, book.curator_id, borrower, borrow_date, return_date
                )
                safe_commit(self.session, "submit borrow request")
            except Exception:
                self.session.rollback()
                raise

        logger.info("Borrow request %s submitted for book %s", record.id, book_id)
        record_lending_event("submitted")
        return borrow_to_model(record)

    def decide(self, borrow_request_id: str, outcome: Decision) -> BorrowRequest:
        """
        Approve (book goes ``on_loan``) or reject (book goes back to ``available``).

        Raises:
            NotFoundError: Unknown request, or the request is not pending
            InvalidStateError: The book is not in the ``requested`` state
            StorageError: The store failed
        """
        outcome = Decision(outcome)
        book_id = self._load_request(borrow_request_id).book_id
        approve = outcome == Decision.APPROVE
        new_status = BorrowStatusEnum.APPROVED if approve else BorrowStatusEnum.REJECTED
        new_availability = AvailabilityEnum.ON_LOAN if approve else AvailabilityEnum.AVAILABLE

        with self.locks.hold(book_id, self.lock_timeout):
            try:
                record = self._load_request(borrow_request_id)
                if record.status != BorrowStatusEnum.PENDING:
                    raise NotFoundError(
                        f"Borrow request {borrow_request_id} is not pending "
                        f"(current status: {record.status.value})"
                    )

                if not self._swap_status(
                    borrow_request_id,
                    BorrowStatusEnum.PENDING,
                    new_status,
                    decided_at=datetime.now(),
                ):
                    raise NotFoundError(f"Borrow request {borrow_request_id} is not pending")

                if not self._swap_availability(
                    book_id, AvailabilityEnum.REQUESTED, new_availability
                ):
                    raise InvalidStateError(f"Book {book_id} is not awaiting a decision")

                safe_commit(self.session, f"{outcome.value} borrow request")
            except Exception:
                self.session.rollback()
                raise

        logger.info(
            "Borrow request %s %s; book %s is now %s",
            borrow_request_id,
            new_status.value,
            book_id,
            new_availability.value,
        )
        record_lending_event(new_status.value)
        return borrow_to_model(self._load_request(borrow_request_id))

    def record_return(self, borrow_request_id: str) -> BorrowRequest:
        """
        Close an approved loan; the book becomes ``available`` again.

        Raises:
            NotFoundError: Unknown request
            InvalidStateError: The request is not approved, or the book is not on loan
            StorageError: The store failed
        """
        book_id = self._load_request(borrow_request_id).book_id

        with self.locks.hold(book_id, self.lock_timeout):
            try:
                record = self._load_request(borrow_request_id)
                if record.status != BorrowStatusEnum.APPROVED:
                    raise InvalidStateError(
                        f"Only approved requests can be returned "
                        f"(current status: {record.status.value})"
                    )

                if not self._swap_status(
                    borrow_request_id,
                    BorrowStatusEnum.APPROVED,
                    BorrowStatusEnum.RETURNED,
                    returned_at=datetime.now(),
                ):
                    raise InvalidStateError(f"Borrow request {borrow_request_id} is not approved")

                if not self._swap_availability(
                    book_id, AvailabilityEnum.ON_LOAN, AvailabilityEnum.AVAILABLE
                ):
                    raise InvalidStateError(f"Book {book_id} is not on loan")

                safe_commit(self.session, "record return")
            except Exception:
                self.session.rollback()
                raise

        logger.info("Borrow request %s returned; book %s is available", borrow_request_id, book_id)
        record_lending_event("returned")
        return borrow_to_model(self._load_request(borrow_request_id))
