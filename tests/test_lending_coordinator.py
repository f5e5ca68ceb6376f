"""
Tests for the lending coordinator.

These tests cover:
1. The full request -> approve -> return cycle
2. Rejection and invalid transitions
3. Validation failures that leave state untouched
4. Concurrent submissions against one book
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from curator_library.database import (
    BookLockRegistry,
    BookRepository,
    ConflictError,
    InvalidStateError,
    LendingCoordinator,
    NotFoundError,
    RequestLedger,
    StorageError,
    ValidationError,
)
from curator_library.models import Availability, BorrowerContact, BorrowStatus, Decision

JAN_1 = date(2024, 1, 1)
JAN_15 = date(2024, 1, 15)


def _borrower(name: str = "Ana Silva", **overrides) -> BorrowerContact:
    fields = {
        "requester": "0xabc123",
        "name": name,
        "email": "ana@example.com",
        "phone": "+351 900 000 000",
        "delivery_address": "Rua Augusta 1, Lisbon",
    }
    fields.update(overrides)
    return BorrowerContact(**fields)


def _availability(session, book_id: str) -> Availability:
    return BookRepository(session).get_book(book_id).availability


class TestLendingCycle:
    def test_request_approve_return(self, db_session, book):
        """Borrower A gets the book, B is turned away, and B succeeds after the return."""
        coordinator = LendingCoordinator(db_session)

        request_a = coordinator.submit_borrow_request(book.id, _borrower("Ana Silva"), JAN_1, JAN_15)
        assert request_a.status == BorrowStatus.PENDING
        assert _availability(db_session, book.id) == Availability.REQUESTED

        with pytest.raises(ConflictError):
            coordinator.submit_borrow_request(book.id, _borrower("Bruno Costa"), JAN_1, JAN_15)

        approved = coordinator.decide(request_a.id, Decision.APPROVE)
        assert approved.status == BorrowStatus.APPROVED
        assert approved.decided_at is not None
        assert _availability(db_session, book.id) == Availability.ON_LOAN

        returned = coordinator.record_return(request_a.id)
        assert returned.status == BorrowStatus.RETURNED
        assert returned.returned_at is not None
        assert _availability(db_session, book.id) == Availability.AVAILABLE

        request_b = coordinator.submit_borrow_request(book.id, _borrower("Bruno Costa"), JAN_1, JAN_15)
        assert request_b.status == BorrowStatus.PENDING
        assert _availability(db_session, book.id) == Availability.REQUESTED

    def test_reject_makes_book_available(self, db_session, book):
        coordinator = LendingCoordinator(db_session)
        request = coordinator.submit_borrow_request(book.id, _borrower(), JAN_1, JAN_15)

        rejected = coordinator.decide(request.id, "reject")

        assert rejected.status == BorrowStatus.REJECTED
        assert _availability(db_session, book.id) == Availability.AVAILABLE

    def test_submission_records_contact_details(self, db_session, curator, book):
        request = LendingCoordinator(db_session).submit_borrow_request(
            book.id, _borrower(), JAN_1, JAN_15, curator_id=curator.id
        )

        assert request.curator_id == curator.id
        assert request.requester == "0xabc123"
        assert request.email == "ana@example.com"
        assert request.borrow_date == JAN_1
        assert request.return_date == JAN_15

    def test_cycle_is_repeatable(self, db_session, book):
        coordinator = LendingCoordinator(db_session)

        for name in ["Ana Silva", "Bruno Costa", "Carla Dias", "Duarte Lima"]:
            request = coordinator.submit_borrow_request(book.id, _borrower(name), JAN_1, JAN_15)
            coordinator.decide(request.id, Decision.APPROVE)
            coordinator.record_return(request.id)

            assert _availability(db_session, book.id) == Availability.AVAILABLE


class TestInvalidTransitions:
    def test_rejected_request_is_never_approved(self, db_session, book):
        coordinator = LendingCoordinator(db_session)
        request = coordinator.submit_borrow_request(book.id, _borrower(), JAN_1, JAN_15)
        coordinator.decide(request.id, Decision.REJECT)

        with pytest.raises(NotFoundError, match="not pending"):
            coordinator.decide(request.id, Decision.APPROVE)

        assert _availability(db_session, book.id) == Availability.AVAILABLE
        stored = RequestLedger(db_session).get_borrow_request(request.id)
        assert stored.status == BorrowStatus.REJECTED

    def test_decide_twice(self, db_session, book):
        coordinator = LendingCoordinator(db_session)
        request = coordinator.submit_borrow_request(book.id, _borrower(), JAN_1, JAN_15)
        coordinator.decide(request.id, Decision.APPROVE)

        with pytest.raises(NotFoundError, match="not pending"):
            coordinator.decide(request.id, Decision.REJECT)

        assert _availability(db_session, book.id) == Availability.ON_LOAN

    def test_return_of_pending_request(self, db_session, book):
        coordinator = LendingCoordinator(db_session)
        request = coordinator.submit_borrow_request(book.id, _borrower(), JAN_1, JAN_15)

        with pytest.raises(InvalidStateError):
            coordinator.record_return(request.id)

        assert _availability(db_session, book.id) == Availability.REQUESTED

    def test_return_of_rejected_request(self, db_session, book):
        coordinator = LendingCoordinator(db_session)
        request = coordinator.submit_borrow_request(book.id, _borrower(), JAN_1, JAN_15)
        coordinator.decide(request.id, Decision.REJECT)

        with pytest.raises(InvalidStateError):
            coordinator.record_return(request.id)

    def test_return_twice(self, db_session, book):
        coordinator = LendingCoordinator(db_session)
        request = coordinator.submit_borrow_request(book.id, _borrower(), JAN_1, JAN_15)
        coordinator.decide(request.id, Decision.APPROVE)
        coordinator.record_return(request.id)

        with pytest.raises(InvalidStateError):
            coordinator.record_return(request.id)

    def test_unknown_ids(self, db_session):
        coordinator = LendingCoordinator(db_session)

        with pytest.raises(NotFoundError):
            coordinator.submit_borrow_request("book_000000000000", _borrower(), JAN_1, JAN_15)
        with pytest.raises(NotFoundError):
            coordinator.decide("borrow_000000000000", Decision.APPROVE)
        with pytest.raises(NotFoundError):
            coordinator.record_return("borrow_000000000000")

    def test_unknown_decision(self, db_session, book):
        coordinator = LendingCoordinator(db_session)
        request = coordinator.submit_borrow_request(book.id, _borrower(), JAN_1, JAN_15)

        with pytest.raises(ValueError):
            coordinator.decide(request.id, "maybe")

        assert _availability(db_session, book.id) == Availability.REQUESTED


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "   "},
            {"email": ""},
            {"delivery_address": ""},
        ],
    )
    def test_missing_contact_fields(self, db_session, curator, book, overrides):
        coordinator = LendingCoordinator(db_session)

        with pytest.raises(ValidationError, match="required"):
            coordinator.submit_borrow_request(book.id, _borrower(**overrides), JAN_1, JAN_15)

        assert _availability(db_session, book.id) == Availability.AVAILABLE
        assert RequestLedger(db_session).list_borrow_requests(curator.id) == []

    @pytest.mark.parametrize("return_date", [JAN_1, date(2023, 12, 31)])
    def test_return_date_must_follow_borrow_date(self, db_session, curator, book, return_date):
        with pytest.raises(ValidationError, match="after"):
            LendingCoordinator(db_session).submit_borrow_request(
                book.id, _borrower(), JAN_1, return_date
            )

        assert _availability(db_session, book.id) == Availability.AVAILABLE
        assert RequestLedger(db_session).list_borrow_requests(curator.id) == []

    def test_curator_must_own_book(self, db_session, other_curator, curator, book):
        with pytest.raises(ValidationError, match="does not belong"):
            LendingCoordinator(db_session).submit_borrow_request(
                book.id, _borrower(), JAN_1, JAN_15, curator_id=other_curator.id
            )

        assert _availability(db_session, book.id) == Availability.AVAILABLE
        assert RequestLedger(db_session).list_borrow_requests(curator.id) == []


class TestBookLockRegistry:
    def test_timeout_raises_storage_error(self):
        locks = BookLockRegistry()
        held = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("book_0123456789ab", timeout=1):
                held.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        try:
            assert held.wait(5)
            with pytest.raises(StorageError, match="Timed out"):
                with locks.hold("book_0123456789ab", timeout=0.05):
                    pass
        finally:
            release.set()
            thread.join()

        with locks.hold("book_0123456789ab", timeout=1):
            pass
        assert len(locks) == 1

    def test_books_do_not_share_locks(self):
        locks = BookLockRegistry()

        with locks.hold("book_aaaaaaaaaaaa", timeout=1):
            with locks.hold("book_bbbbbbbbbbbb", timeout=0.05):
                pass

    def test_unknown_books_leave_no_locks(self, db_session):
        locks = BookLockRegistry()
        coordinator = LendingCoordinator(db_session, locks=locks)

        for n in range(5):
            with pytest.raises(NotFoundError):
                coordinator.submit_borrow_request(f"book_00000000000{n}", _borrower(), JAN_1, JAN_15)

        assert len(locks) == 0


@pytest.mark.concurrency
class TestConcurrentSubmissions:
    def test_exactly_one_submission_wins(self, db_manager, curator, book):
        workers = 8
        barrier = threading.Barrier(workers)

        def submit(index: int):
            session = db_manager.create_session()
            try:
                barrier.wait(timeout=5)
                return LendingCoordinator(session).submit_borrow_request(
                    book.id, _borrower(f"Borrower {index}"), JAN_1, JAN_15
                )
            except ConflictError as e:
                return e
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(submit, range(workers)))

        successes = [o for o in outcomes if not isinstance(o, Exception)]
        conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
        assert len(successes) == 1
        assert len(conflicts) == workers - 1

        with db_manager.session_scope() as session:
            assert _availability(session, book.id) == Availability.REQUESTED
            active = [
                r
                for r in RequestLedger(session).list_borrow_requests(curator.id)
                if r.status.is_active
            ]
        assert [r.id for r in active] == [successes[0].id]

    def test_concurrent_decisions_apply_once(self, db_manager, book):
        with db_manager.session_scope() as session:
            request = LendingCoordinator(session).submit_borrow_request(
                book.id, _borrower(), JAN_1, JAN_15
            )

        barrier = threading.Barrier(2)

        def decide(outcome: Decision):
            session = db_manager.create_session()
            try:
                barrier.wait(timeout=5)
                return LendingCoordinator(session).decide(request.id, outcome)
            except NotFoundError as e:
                return e
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = list(pool.map(decide, [Decision.APPROVE, Decision.REJECT]))

        decided = [o for o in outcomes if not isinstance(o, Exception)]
        assert len(decided) == 1

        expected = (
            Availability.ON_LOAN
            if decided[0].status == BorrowStatus.APPROVED
            else Availability.AVAILABLE
        )
        with db_manager.session_scope() as session:
            assert _availability(session, book.id) == expected
