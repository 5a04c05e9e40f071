"""Error types raised across docrag.

The pipeline turns these into user-facing messages; lower layers raise them.
"""
from typing import Optional


class DocRagError(Exception):
    """Base class for docrag errors."""


class ValidationError(DocRagError):
    """Malformed path, URL, id or empty input. Nothing was attempted."""


class UnsupportedFormat(DocRagError):
    """File type the extractors cannot handle."""

    def __init__(self, message: str, extension: Optional[str] = None):
        super().__init__(message)
        self.extension = extension


class ExtractionError(DocRagError):
    """Text could not be extracted from a file or web page."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class ProviderError(DocRagError):
    """Embedding or completion provider failed or returned nothing usable."""


class StorageError(DocRagError):
    """Database operation failed (writes are rolled back first)."""
