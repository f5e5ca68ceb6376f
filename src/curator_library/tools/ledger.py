"""Request ledger tools: acquisition requests and borrow request history."""

import logging
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError

from ..database.errors import RepositoryException
from ..database.request_ledger import RequestLedger
from ..database.session import get_session
from ..models.requests import AcquisitionRequestCreateSchema
from ..observability import trace_tool
from .responses import (
    error_response,
    invalid_input_response,
    repository_error_response,
    success_response,
    unexpected_error_response,
)

logger = logging.getLogger(__name__)


class SubmitAcquisitionInput(BaseModel):
    """Input schema for submit_acquisition_request; a blank title is rejected before the ledger."""

    curator_id: str = Field(..., min_length=1)
    title: str = Field(default="", max_length=500)
    author: str = Field(default="", max_length=300)
    notes: str | None = Field(default=None, max_length=2000)
    requester: str = Field(default="", max_length=200)


class CuratorRequestsInput(BaseModel):
    curator_id: str = Field(..., min_length=1)


@trace_tool("submit_acquisition_request")
async def submit_acquisition_request_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = SubmitAcquisitionInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "acquisition request")

    if not params.title.strip():
        return error_response("Title is required", "validation", 400)

    try:
        data = AcquisitionRequestCreateSchema.model_validate(params.model_dump())
        with get_session() as session:
            request = RequestLedger(session).create_acquisition_request(data)
    except SchemaValidationError as e:
        return invalid_input_response(e, "acquisition request")
    except RepositoryException as e:
        return repository_error_response(e, "Acquisition request")
    except Exception:
        return unexpected_error_response("submit_acquisition_request")

    return success_response(
        f"Request for '{request.title}' sent to the curator",
        {"acquisition_request": request.model_dump(mode="json")},
        status=201,
    )


@trace_tool("list_acquisition_requests")
async def list_acquisition_requests_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = CuratorRequestsInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "acquisition requests")

    try:
        with get_session() as session:
            requests = RequestLedger(session).list_acquisition_requests(params.curator_id)
    except RepositoryException as e:
        return repository_error_response(e, "List acquisition requests")
    except Exception:
        return unexpected_error_response("list_acquisition_requests")

    return success_response(
        f"{len(requests)} acquisition request(s)",
        {"acquisition_requests": [r.model_dump(mode="json") for r in requests]},
    )


@trace_tool("list_borrow_requests")
async def list_borrow_requests_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    """Borrow requests for a curator, each joined to its book as it is now."""
    try:
        params = CuratorRequestsInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "borrow requests")

    try:
        with get_session() as session:
            requests = RequestLedger(session).list_borrow_requests(params.curator_id)
    except RepositoryException as e:
        return repository_error_response(e, "List borrow requests")
    except Exception:
        return unexpected_error_response("list_borrow_requests")

    pending = sum(1 for r in requests if r.status.value == "pending")
    return success_response(
        f"{len(requests)} borrow request(s), {pending} pending",
        {"borrow_requests": [r.model_dump(mode="json") for r in requests]},
    )


submit_acquisition_request = {
    "name": "submit_acquisition_request",
    "description": "Ask a curator to acquire a book they do not yet have.",
    "inputSchema": SubmitAcquisitionInput.model_json_schema(),
    "handler": submit_acquisition_request_handler,
}

list_acquisition_requests = {
    "name": "list_acquisition_requests",
    "description": "List acquisition requests addressed to a curator, oldest first.",
    "inputSchema": CuratorRequestsInput.model_json_schema(),
    "handler": list_acquisition_requests_handler,
}

list_borrow_requests = {
    "name": "list_borrow_requests",
    "description": "List a curator's borrow requests with the current state of each book.",
    "inputSchema": CuratorRequestsInput.model_json_schema(),
    "handler": list_borrow_requests_handler,
}
