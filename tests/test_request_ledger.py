"""Tests for the request ledger."""

from datetime import date

import pytest

from curator_library.database import (
    LendingCoordinator,
    NotFoundError,
    RequestLedger,
    ValidationError,
)
from curator_library.models import (
    AcquisitionRequestCreateSchema,
    Availability,
    BorrowerContact,
    BorrowStatus,
)


def _borrower(name: str = "Ana Silva") -> BorrowerContact:
    return BorrowerContact(
        requester="0xabc123",
        name=name,
        email="ana@example.com",
        phone="+351 900 000 000",
        delivery_address="Rua Augusta 1, Lisbon",
    )


class TestAcquisitionRequests:
    def test_create_and_list_in_order(self, db_session, curator):
        ledger = RequestLedger(db_session)
        first = ledger.create_acquisition_request(
            AcquisitionRequestCreateSchema(
                curator_id=curator.id, title="  Middlemarch ", author="George Eliot", requester="0xabc"
            )
        )
        second = ledger.create_acquisition_request(
            AcquisitionRequestCreateSchema(curator_id=curator.id, title="Persuasion", notes="Any edition")
        )

        requests = ledger.list_acquisition_requests(curator.id)

        assert [r.id for r in requests] == [first.id, second.id]
        assert requests[0].title == "Middlemarch"
        assert requests[0].requester == "0xabc"
        assert requests[1].notes == "Any edition"

    def test_blank_title_rejected(self, db_session, curator):
        ledger = RequestLedger(db_session)

        with pytest.raises(ValidationError, match="title"):
            ledger.create_acquisition_request(
                AcquisitionRequestCreateSchema(curator_id=curator.id, title="   ")
            )

        assert ledger.list_acquisition_requests(curator.id) == []

    def test_unknown_curator_rejected(self, db_session):
        with pytest.raises(ValidationError):
            RequestLedger(db_session).create_acquisition_request(
                AcquisitionRequestCreateSchema(curator_id="curator_000000000000", title="Emma")
            )

    def test_scoped_to_curator(self, db_session, curator, other_curator):
        ledger = RequestLedger(db_session)
        ledger.create_acquisition_request(
            AcquisitionRequestCreateSchema(curator_id=curator.id, title="Emma")
        )

        assert ledger.list_acquisition_requests(other_curator.id) == []


class TestBorrowRequests:
    def test_listing_joins_current_book_state(self, db_session, curator, book):
        submitted = LendingCoordinator(db_session).submit_borrow_request(
            book.id, _borrower(), date(2024, 1, 1), date(2024, 1, 15)
        )

        requests = RequestLedger(db_session).list_borrow_requests(curator.id)

        assert [r.id for r in requests] == [submitted.id]
        assert requests[0].status == BorrowStatus.PENDING
        assert requests[0].book is not None
        assert requests[0].book.availability == Availability.REQUESTED

        LendingCoordinator(db_session).decide(submitted.id, "approve")

        requests = RequestLedger(db_session).list_borrow_requests(curator.id)
        assert requests[0].status == BorrowStatus.APPROVED
        assert requests[0].book.availability == Availability.ON_LOAN

    def test_get_borrow_request(self, db_session, book):
        submitted = LendingCoordinator(db_session).submit_borrow_request(
            book.id, _borrower(), date(2024, 1, 1), date(2024, 1, 15)
        )

        fetched = RequestLedger(db_session).get_borrow_request(submitted.id)

        assert fetched.name == "Ana Silva"
        assert fetched.delivery_address == "Rua Augusta 1, Lisbon"
        assert fetched.loan_period_days == 14

    def test_get_missing_borrow_request(self, db_session):
        with pytest.raises(NotFoundError):
            RequestLedger(db_session).get_borrow_request("borrow_000000000000")

    def test_empty_ledger(self, db_session, curator):
        assert RequestLedger(db_session).list_borrow_requests(curator.id) == []
