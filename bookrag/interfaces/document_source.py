"""Abstract base class for document sources.

A document source turns a URL or an in-memory buffer into plain text plus
a page count.  The concrete implementation downloads with httpx and parses
PDFs with PyMuPDF.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from bookrag.models.knowledge import ExtractedDocument


# Concrete implementation: PDFDocumentSource (bookrag/providers/document/)
class IDocumentSource(ABC):
    """Contract for fetching and extracting uploaded documents."""

    @abstractmethod
    async def fetch(self, url: str) -> bytes:
        """Download the raw bytes behind *url*.

        Raises
        ------
        bookrag.utils.errors.ExtractionError
            On timeout, connection failure, or a non-success status.
        """

    @abstractmethod
    async def extract(self, data: bytes) -> ExtractedDocument:
        """Extract text and page count from document bytes.

        Raises
        ------
        bookrag.utils.errors.ExtractionError
            If the bytes cannot be parsed.
        bookrag.utils.errors.EmptyContentError
            If parsing succeeds but no text is present.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this source."""
