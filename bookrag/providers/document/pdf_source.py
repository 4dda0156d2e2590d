"""PDF document source.

Downloads uploaded files with ``httpx`` under a fixed timeout and extracts
their text page by page with PyMuPDF (fitz).  Parsing runs in a worker
thread via ``asyncio.to_thread`` so large PDFs don't block the event loop.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import httpx
import structlog

from bookrag.interfaces.document_source import IDocumentSource
from bookrag.models.knowledge import ExtractedDocument
from bookrag.utils.errors import EmptyContentError, ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 30.0


class PDFDocumentSource(IDocumentSource):
    """Fetches PDFs over HTTP and extracts plain text.

    Parameters
    ----------
    http_client:
        Optional shared ``httpx.AsyncClient``.  When omitted, a short-lived
        client is opened per download.
    timeout:
        Download timeout in seconds.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._http_client = http_client
        self._timeout = timeout

    # ------------------------------------------------------------------
    # IDocumentSource implementation
    # ------------------------------------------------------------------

    async def fetch(self, url: str) -> bytes:
        try:
            if self._http_client is not None:
                response = await self._http_client.get(url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ExtractionError(
                message=f"Download timed out after {self._timeout:.0f}s: {url}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionError(
                message=f"Download failed for {url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("pdf_downloaded", url=url, size_bytes=len(response.content))
        return response.content

    async def extract(self, data: bytes) -> ExtractedDocument:
        if not data:
            raise ExtractionError(
                message="Empty document buffer",
                provider_name=self.get_provider_name(),
            )

        pages = await asyncio.to_thread(self._extract_pages, data)
        text = "\n\n".join(page_text for page_text in pages if page_text)
        if not text.strip():
            logger.warning("pdf_no_text_extracted", pages=len(pages))
            raise EmptyContentError(
                message="No extractable text found in PDF",
                provider_name=self.get_provider_name(),
            )

        logger.info(
            "pdf_processed",
            pages=len(pages),
            chars=len(text),
            size_bytes=len(data),
        )
        return ExtractedDocument(text=text, page_count=len(pages), byte_size=len(data))

    def get_provider_name(self) -> str:
        return "pymupdf"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _extract_pages(self, data: bytes) -> list[str]:
        """Return the stripped text of every page, in page order."""
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(
                message=f"Unable to open PDF: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        try:
            return [doc[page_num].get_text("text").strip() for page_num in range(len(doc))]
        except Exception as exc:
            raise ExtractionError(
                message=f"PDF text extraction failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            doc.close()
