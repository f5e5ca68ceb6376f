"""Curator Library: a curator-operated book catalog and lending coordinator."""

__version__ = "0.1.0"
