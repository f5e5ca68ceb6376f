"""Metadata enrichment from external bibliographic and cover sources."""

from .enricher import (
    COMPLETE_ISBN_LENGTH,
    BookMetadata,
    ExternalSourceError,
    MetadataEnricher,
    get_enricher,
    isbn_ready_for_lookup,
    set_enricher,
)

__all__ = [
    "COMPLETE_ISBN_LENGTH",
    "BookMetadata",
    "ExternalSourceError",
    "MetadataEnricher",
    "get_enricher",
    "isbn_ready_for_lookup",
    "set_enricher",
]
