"""Document source providers.

PDFDocumentSource downloads files with httpx and extracts text with PyMuPDF.
"""

from bookrag.providers.document.pdf_source import PDFDocumentSource

__all__ = ["PDFDocumentSource"]
