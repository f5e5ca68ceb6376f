"""
Lending tools: the borrow request lifecycle.

    available --submit--> requested --approve--> on_loan --return--> available
                                    \\--reject--> available

Each call runs the coordinator in a worker thread with its own session,
since it may wait on another caller's per-book lock.
"""

import asyncio
import logging
from datetime import date
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError

from ..database.errors import RepositoryException
from ..database.lending_coordinator import LendingCoordinator
from ..database.session import get_session
from ..models.requests import BorrowerContact, BorrowRequest, Decision
from ..observability import trace_tool
from .responses import (
    invalid_input_response,
    repository_error_response,
    success_response,
    unexpected_error_response,
)

logger = logging.getLogger(__name__)


class SubmitBorrowInput(BaseModel):
    """
    Input schema for submit_borrow_request.

    Contact fields are checked by the coordinator, so a blank name is
    reported the same way as a bad date range.
    """

    book_id: str = Field(..., min_length=1, description="Book being requested")
    curator_id: str | None = Field(default=None, description="Curator the request is addressed to")
    requester: str = Field(default="", description="Wallet or identity string", max_length=200)
    name: str = Field(default="", max_length=200)
    email: str = Field(default="", max_length=320)
    phone: str = Field(default="", max_length=50)
    delivery_address: str = Field(default="", max_length=1000)
    borrow_date: date = Field(..., description="First day of the loan (YYYY-MM-DD)")
    return_date: date = Field(..., description="Day the book comes back (YYYY-MM-DD)")


class DecideBorrowInput(BaseModel):
    borrow_request_id: str = Field(..., min_length=1)
    decision: Decision = Field(..., description="'approve' or 'reject'")


class RecordReturnInput(BaseModel):
    borrow_request_id: str = Field(..., min_length=1)


def _borrow_data(request: BorrowRequest) -> dict[str, Any]:
    return {"borrow_request": request.model_dump(mode="json")}


def _submit(params: SubmitBorrowInput) -> BorrowRequest:
    borrower = BorrowerContact(
        requester=params.requester,
        name=params.name,
        email=params.email,
        phone=params.phone,
        delivery_address=params.delivery_address,
    )
    with get_session() as session:
        return LendingCoordinator(session).submit_borrow_request(
            params.book_id,
            borrower,
            params.borrow_date,
            params.return_date,
            curator_id=params.curator_id,
        )


def _decide(params: DecideBorrowInput) -> BorrowRequest:
    with get_session() as session:
        return LendingCoordinator(session).decide(params.borrow_request_id, params.decision)


def _return(params: RecordReturnInput) -> BorrowRequest:
    with get_session() as session:
        return LendingCoordinator(session).record_return(params.borrow_request_id)


@trace_tool("submit_borrow_request")
async def submit_borrow_request_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Ask to borrow an available book.

    Returns 201 with the pending request, 400 for bad input, 404 for an
    unknown book, 409 ``conflict`` when the book is no longer available.
    """
    try:
        params = SubmitBorrowInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "borrow request")

    try:
        request = await asyncio.to_thread(_submit, params)
    except RepositoryException as e:
        return repository_error_response(e, "Borrow request")
    except Exception:
        return unexpected_error_response("submit_borrow_request")

    return success_response(
        f"Borrow request {request.id} submitted; the curator will review it",
        _borrow_data(request),
        status=201,
    )


@trace_tool("decide_borrow_request")
async def decide_borrow_request_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = DecideBorrowInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "decision")

    try:
        request = await asyncio.to_thread(_decide, params)
    except RepositoryException as e:
        return repository_error_response(e, "Borrow decision")
    except Exception:
        return unexpected_error_response("decide_borrow_request")

    return success_response(
        f"Borrow request {request.id} {request.status.value}",
        _borrow_data(request),
    )


@trace_tool("record_return")
async def record_return_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = RecordReturnInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "return")

    try:
        request = await asyncio.to_thread(_return, params)
    except RepositoryException as e:
        return repository_error_response(e, "Return")
    except Exception:
        return unexpected_error_response("record_return")

    return success_response(
        f"Book {request.book_id} returned and available again",
        _borrow_data(request),
    )


submit_borrow_request = {
    "name": "submit_borrow_request",
    "description": (
        "Request to borrow an available book. The book is held as 'requested' until "
        "the curator decides; if someone else got there first the result is a conflict."
    ),
    "inputSchema": SubmitBorrowInput.model_json_schema(),
    "handler": submit_borrow_request_handler,
}

decide_borrow_request = {
    "name": "decide_borrow_request",
    "description": (
        "Approve (book goes on loan) or reject (book becomes available) a pending "
        "borrow request."
    ),
    "inputSchema": DecideBorrowInput.model_json_schema(),
    "handler": decide_borrow_request_handler,
}

record_return = {
    "name": "record_return",
    "description": "Record the return of an approved loan; the book becomes available.",
    "inputSchema": RecordReturnInput.model_json_schema(),
    "handler": record_return_handler,
}
