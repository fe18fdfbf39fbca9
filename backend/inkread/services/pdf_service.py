"""
InkRead Backend — PDF Text Service
====================================

What:  Page counting and text extraction for uploaded PDFs.
How:   PyPDF2's PdfReader over the in-memory bytes, run in a worker thread.
Who:   ProcessingService (page-count validation) and OCRDispatcher (text).

PDFs are not rasterized and OCR'd: only the embedded text layer is returned,
so a scanned PDF without a text layer yields an empty string.

Failure policy differs between the two operations:
    count_pages()   → falls back to 1 page when the document cannot be parsed,
                      so an unreadable PDF passes the page limit
    extract_text()  → raises OCRServiceError naming the file
"""

import asyncio
import io
import logging

from PyPDF2 import PdfReader

from inkread.exceptions import OCRServiceError

logger = logging.getLogger(__name__)


class PDFService:

    @staticmethod
    def _count_pages_sync(content: bytes) -> int:
        return len(PdfReader(io.BytesIO(content)).pages)

    @staticmethod
    def _extract_text_sync(content: bytes) -> str:
        reader = PdfReader(io.BytesIO(content))
        parts = [page.extract_text() or "" for page in reader.pages]
        return "\n".join(parts).strip()

    async def count_pages(self, content: bytes, file_name: str = "document.pdf") -> int:
        """Number of pages reported by the parser, or 1 when parsing fails."""
        try:
            return await asyncio.to_thread(self._count_pages_sync, content)
        except Exception as e:
            logger.warning(
                "Could not read page count of %s, assuming 1 page: %s",
                file_name,
                str(e),
            )
            return 1

    async def extract_text(self, content: bytes, file_name: str = "document.pdf") -> str:
        try:
            text = await asyncio.to_thread(self._extract_text_sync, content)
        except Exception as e:
            logger.error("PDF parsing failed for %s: %s", file_name, str(e))
            raise OCRServiceError(
                message=f"Failed to parse PDF {file_name}: {e}",
                file_name=file_name,
                context={"error_type": type(e).__name__},
            )

        logger.info("Extracted %d chars from PDF %s", len(text), file_name)
        return text


pdf_service = PDFService()
