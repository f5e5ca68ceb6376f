"""Curator tools: registration, profile and public notice."""

import logging
from typing import Any

from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaValidationError

from ..database.curator_repository import CuratorRepository
from ..database.errors import RepositoryException
from ..database.session import get_session
from ..models.curator import CuratorCreateSchema
from ..observability import trace_tool
from .responses import (
    invalid_input_response,
    repository_error_response,
    success_response,
    unexpected_error_response,
)

logger = logging.getLogger(__name__)


class GetCuratorInput(BaseModel):
    curator_id: str = Field(..., min_length=1)
    include_books: bool = Field(default=True, description="Include the curator's catalog")


class UpdateNoticeInput(BaseModel):
    """
    Input schema for update_public_notice.

    Length is enforced by the repository so an over-long notice is
    rejected before any write.
    """

    curator_id: str = Field(..., min_length=1)
    text: str = Field(default="", description="New notice text, at most 200 characters")
    expected_version: int | None = Field(
        default=None,
        ge=0,
        description="Only update if the notice is still at this version",
    )


@trace_tool("register_curator")
async def register_curator_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        data = CuratorCreateSchema.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "curator registration")

    try:
        with get_session() as session:
            curator = CuratorRepository(session).create_curator(data)
    except RepositoryException as e:
        return repository_error_response(e, "Register curator")
    except Exception:
        return unexpected_error_response("register_curator")

    return success_response(
        f"Curator '{curator.name}' registered as {curator.id}",
        {"curator": curator.model_dump(mode="json")},
        status=201,
    )


@trace_tool("get_curator")
async def get_curator_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = GetCuratorInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "curator")

    try:
        with get_session() as session:
            curator = CuratorRepository(session).get_curator(
                params.curator_id, include_books=params.include_books
            )
    except RepositoryException as e:
        return repository_error_response(e, "Get curator")
    except Exception:
        return unexpected_error_response("get_curator")

    return success_response(
        f"{curator.name} ({len(curator.books)} book(s))",
        {"curator": curator.model_dump(mode="json")},
    )


@trace_tool("update_public_notice")
async def update_public_notice_handler(arguments: dict[str, Any]) -> dict[str, Any]:
    try:
        params = UpdateNoticeInput.model_validate(arguments or {})
    except SchemaValidationError as e:
        return invalid_input_response(e, "public notice")

    try:
        with get_session() as session:
            curator = CuratorRepository(session).update_public_notice(
                params.curator_id, params.text, expected_version=params.expected_version
            )
    except RepositoryException as e:
        return repository_error_response(e, "Update public notice")
    except Exception:
        return unexpected_error_response("update_public_notice")

    return success_response(
        "Public notice updated",
        {"curator": curator.model_dump(mode="json")},
    )


register_curator = {
    "name": "register_curator",
    "description": "Register a new curator (a person or organization lending books).",
    "inputSchema": CuratorCreateSchema.model_json_schema(),
    "handler": register_curator_handler,
}

get_curator = {
    "name": "get_curator",
    "description": "Get a curator's profile, public notice and catalog.",
    "inputSchema": GetCuratorInput.model_json_schema(),
    "handler": get_curator_handler,
}

update_public_notice = {
    "name": "update_public_notice",
    "description": (
        "Replace the curator's public notice (200 characters max). Pass expected_version "
        "to refuse the update if someone else changed the notice in the meantime."
    ),
    "inputSchema": UpdateNoticeInput.model_json_schema(),
    "handler": update_public_notice_handler,
}
