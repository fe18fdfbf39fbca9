"""
InkRead Backend — Abstract OCR Engine Interface
=================================================

What:  Abstract base class defining the contract for image text recognition.
How:   Concrete engines implement `recognize()` and `health_check()`;
       `extract_text()` wraps `recognize()` with the configured timeout and
       translates every failure into OCRServiceError.
Who:   Called by OCRDispatcher for image uploads (PDFs go to PDFService).

Implementations:
    - TesseractEngine: local Tesseract via pytesseract (default)
    - GeminiEngine:    Google Gemini vision model

Timeout semantics:
    The recognition call races a timer of `ocr_timeout_seconds` (30s).
    When the timer wins the request fails; a recognition running in a
    worker thread is not interrupted, its result is discarded.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

from inkread.config import settings
from inkread.exceptions import OCRServiceError

logger = logging.getLogger(__name__)


class OCREngine(ABC):
    """
    Contract:
        - recognize() accepts raw image bytes and their MIME type, returns text
        - Returns "" when no text is found; never None
        - Engine-specific errors may propagate from recognize(); callers use
          extract_text(), which converts them to OCRServiceError
    """

    name: str = "ocr"

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds or settings.ocr_timeout_seconds

    @abstractmethod
    async def recognize(self, content: bytes, mime_type: str) -> str:
        """
        Extract text from an image.

        Args:
            content:   Raw image bytes (jpeg, png, gif or webp)
            mime_type: Declared content type of the upload

        Returns:
            The recognized text, "" when nothing was recognized.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight availability probe used by GET /health."""
        ...

    async def extract_text(self, content: bytes, mime_type: str, file_name: str) -> str:
        """
        Run recognize() under the timeout and normalize its failures.

        Raises:
            OCRServiceError: recognition failed or timed out. The message
                names the file.
        """
        start_time = time.perf_counter()
        logger.info("Starting %s OCR for %s (%d bytes)", self.name, file_name, len(content))

        try:
            text = await asyncio.wait_for(
                self.recognize(content, mime_type),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "%s OCR timed out after %.0fs for %s",
                self.name,
                self.timeout_seconds,
                file_name,
            )
            raise OCRServiceError(
                message=(
                    f"OCR processing failed for {file_name}: "
                    f"operation timed out after {self.timeout_seconds:g} seconds"
                ),
                file_name=file_name,
                context={"engine": self.name, "timeout_seconds": self.timeout_seconds},
            )
        except OCRServiceError:
            raise
        except Exception as e:
            logger.error("%s OCR failed for %s: %s", self.name, file_name, str(e), exc_info=True)
            raise OCRServiceError(
                message=f"OCR processing failed for {file_name}: {e}",
                file_name=file_name,
                context={"engine": self.name, "error_type": type(e).__name__},
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        text = (text or "").strip()
        logger.info(
            "%s OCR completed for %s in %.0fms, extracted %d chars",
            self.name,
            file_name,
            duration_ms,
            len(text),
        )
        return text
