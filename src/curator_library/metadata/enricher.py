"""
Metadata enricher: best-effort bibliographic data and cover for an ISBN.

Two independent requests are made per lookup, both bounded by the
configured timeout:

1. the bibliographic source (Open Library ``/api/books``) for title,
   authors, publisher, publish date and pagination
2. the cover service (``covers.openlibrary.org``) probed with
   ``?default=false`` so a missing cover answers 404 instead of a blank image

A failure in one never affects the other, and neither ever escapes
``lookup``: the caller always gets a ``BookMetadata`` whose empty fields
tell it to fall back to a generated placeholder. Failure reasons are kept
on the result for logging only.
"""

import asyncio
import logging
import re
import threading
from typing import Any

import httpx
import logfire
from pydantic import BaseModel, Field

from ..config import get_config
from ..models.book import ISBN_PATTERN, normalize_isbn
from ..observability import record_metadata_lookup

logger = logging.getLogger(__name__)

# a lookup is only worth a network call once a full ISBN-13 is typed
COMPLETE_ISBN_LENGTH = 13


class ExternalSourceError(Exception):
    """A bibliographic or cover request failed; recorded, never propagated."""


class BookMetadata(BaseModel):
    """Result of a metadata lookup. Empty strings mean "unknown"."""

    isbn: str
    title: str = ""
    author: str = ""
    publisher: str = ""
    publish_date: str = ""
    page_count: int | None = None
    cover_url: str | None = None
    found: bool = False
    metadata_error: str | None = Field(default=None, exclude=True)
    cover_error: str | None = Field(default=None, exclude=True)

    @property
    def is_complete(self) -> bool:
        """Both sources answered without error and the title is known."""
        return self.found and self.metadata_error is None and self.cover_error is None


def isbn_ready_for_lookup(raw: str | None) -> bool:
    """True once a full 13-digit ISBN has been entered; partial input never is."""
    if not raw:
        return False
    normalized = normalize_isbn(raw)
    return len(normalized) == COMPLETE_ISBN_LENGTH and normalized.isdigit()


def _names(entries: Any) -> str:
    if not isinstance(entries, list):
        return ""
    names = [e.get("name", "") for e in entries if isinstance(e, dict)]
    return ", ".join(name for name in names if name)


def _page_count(record: dict[str, Any]) -> int | None:
    pages = record.get("number_of_pages")
    if isinstance(pages, int) and pages >= 0:
        return pages
    match = re.search(r"\d+", str(record.get("pagination") or ""))
    return int(match.group()) if match else None


class MetadataEnricher:
    """
    Resolves bibliographic data and a cover reference for an ISBN.

    Successful lookups are cached for the life of the process; an ISBN
    names one edition, so entries are never invalidated.
    """

    def __init__(
        self,
        metadata_base_url: str | None = None,
        cover_base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        config = get_config()
        self.metadata_base_url = (metadata_base_url or config.metadata_base_url).rstrip("/")
        self.cover_base_url = (cover_base_url or config.cover_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or config.metadata_timeout_seconds
        self._transport = transport
        self._cache: dict[str, BookMetadata] = {}
        self._lock = threading.Lock()

    def cached(self, isbn: str) -> BookMetadata | None:
        with self._lock:
            return self._cache.get(normalize_isbn(isbn))

    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    async def lookup_when_complete(self, raw: str | None) -> BookMetadata | None:
        """Look up only once a full ISBN-13 is entered; otherwise return None."""
        if not isbn_ready_for_lookup(raw):
            return None
        return await self.lookup(raw)

    async def lookup(self, isbn: str) -> BookMetadata:
        """
        Fetch metadata and probe the cover for ``isbn``.

        Never raises for malformed, unknown or unreachable input.
        """
        normalized = normalize_isbn(isbn or "")
        if not ISBN_PATTERN.match(normalized):
            logger.info("Skipping metadata lookup for malformed ISBN %r", isbn)
            record_metadata_lookup("malformed")
            return BookMetadata(isbn=normalized, metadata_error="malformed ISBN")

        hit = self.cached(normalized)
        if hit is not None:
            record_metadata_lookup("cache_hit")
            return hit.model_copy()

        with logfire.span("metadata.lookup {isbn}", isbn=normalized) as span:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                record_result, cover_result = await asyncio.gather(
                    self._bounded(self._fetch_record(client, normalized), "bibliographic source"),
                    self._bounded(self._probe_cover(client, normalized), "cover service"),
                    return_exceptions=True,
                )

            metadata = BookMetadata(isbn=normalized)

            if isinstance(record_result, BaseException):
                metadata.metadata_error = str(record_result)
                logger.warning("Metadata lookup failed for %s: %s", normalized, record_result)
            elif record_result:
                metadata.title = str(record_result.get("title") or "")
                metadata.author = _names(record_result.get("authors"))
                metadata.publisher = _names(record_result.get("publishers"))
                metadata.publish_date = str(record_result.get("publish_date") or "")
                metadata.page_count = _page_count(record_result)
                metadata.found = bool(metadata.title)

            if isinstance(cover_result, BaseException):
                metadata.cover_error = str(cover_result)
                logger.warning("Cover probe failed for %s: %s", normalized, cover_result)
            else:
                metadata.cover_url = cover_result

            span.set_attribute("metadata.found", metadata.found)
            span.set_attribute("metadata.has_cover", metadata.cover_url is not None)

        if metadata.is_complete:
            with self._lock:
                self._cache[normalized] = metadata.model_copy()
            record_metadata_lookup("found")
        else:
            record_metadata_lookup("degraded" if metadata.metadata_error else "not_found")

        return metadata

    async def _bounded(self, coro, source: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout_seconds)
        except TimeoutError as e:
            raise ExternalSourceError(f"{source} timed out after {self.timeout_seconds}s") from e

    async def _fetch_record(self, client: httpx.AsyncClient, isbn: str) -> dict[str, Any]:
        """Return the source's record for ``isbn``, or ``{}`` when unknown."""
        url = f"{self.metadata_base_url}/api/books"
        params = {"bibkeys": f"ISBN:{isbn}", "format": "json", "jscmd": "data"}
        try:
            response = await client.get(url, params=params)
            if response.status_code == 404:
                return {}
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise ExternalSourceError(f"bibliographic source timed out: {e!r}") from e
        except httpx.HTTPError as e:
            raise ExternalSourceError(f"bibliographic source failed: {e}") from e
        except ValueError as e:
            raise ExternalSourceError(f"bibliographic source returned invalid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise ExternalSourceError("bibliographic source returned an unexpected payload")
        record = payload.get(f"ISBN:{isbn}")
        return record if isinstance(record, dict) else {}

    async def _probe_cover(self, client: httpx.AsyncClient, isbn: str) -> str | None:
        """Return the cover URL if the cover service has one, else None."""
        url = f"{self.cover_base_url}/b/isbn/{isbn}-L.jpg?default=false"
        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            raise ExternalSourceError(f"cover service timed out: {e!r}") from e
        except httpx.HTTPError as e:
            raise ExternalSourceError(f"cover service failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.is_success:
            return url
        raise ExternalSourceError(f"cover service answered {response.status_code}")


class _EnricherStore:
    _instance: MetadataEnricher | None = None


def get_enricher() -> MetadataEnricher:
    """Process-wide enricher, so its cache outlives individual tool calls."""
    if _EnricherStore._instance is None:  # type: ignore[reportPrivateUsage]
        _EnricherStore._instance = MetadataEnricher()  # type: ignore[reportPrivateUsage]
    return _EnricherStore._instance  # type: ignore[reportPrivateUsage]


def set_enricher(enricher: MetadataEnricher | None) -> None:
    _EnricherStore._instance = enricher  # type: ignore[reportPrivateUsage]
