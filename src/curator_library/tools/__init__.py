"""
MCP tools for the Curator Library server.

Each tool is a dictionary with ``name``, ``description``, ``inputSchema``
and an async ``handler(arguments)`` that always returns a result dict and
never raises; failures carry ``isError``, ``status`` and ``errorType``.
"""

from .catalog import add_book, get_book_details, list_catalog, lookup_book_metadata, search_books
from .curators import get_curator, register_curator, update_public_notice
from .ledger import list_acquisition_requests, list_borrow_requests, submit_acquisition_request
from .lending import decide_borrow_request, record_return, submit_borrow_request

all_tools = [
    search_books,
    add_book,
    lookup_book_metadata,
    list_catalog,
    get_book_details,
    register_curator,
    get_curator,
    update_public_notice,
    submit_borrow_request,
    decide_borrow_request,
    record_return,
    submit_acquisition_request,
    list_acquisition_requests,
    list_borrow_requests,
]

__all__ = [
    "add_book",
    "all_tools",
    "decide_borrow_request",
    "get_book_details",
    "get_curator",
    "list_acquisition_requests",
    "list_borrow_requests",
    "list_catalog",
    "lookup_book_metadata",
    "record_return",
    "register_curator",
    "search_books",
    "submit_acquisition_request",
    "submit_borrow_request",
    "update_public_notice",
]
