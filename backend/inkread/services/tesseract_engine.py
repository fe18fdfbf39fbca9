"""
InkRead Backend — Tesseract OCR Engine
========================================

What:  Image OCR with a local Tesseract install via pytesseract.
How:   Pillow decodes the upload (first frame for animated GIF/WebP),
       pytesseract runs the recognizer in a worker thread so the event
       loop keeps serving other requests.
Who:   Default engine (OCR_ENGINE=tesseract).

Requires the `tesseract` binary on PATH or TESSERACT_CMD pointing at it,
plus the traineddata for OCR_LANGUAGE (default "eng").
"""

import asyncio
import io
import logging
from typing import Optional

import pytesseract
from PIL import Image

from inkread.config import settings
from inkread.services.ocr_base import OCREngine

logger = logging.getLogger(__name__)


class TesseractEngine(OCREngine):
    name = "tesseract"

    def __init__(
        self,
        language: Optional[str] = None,
        tesseract_cmd: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(timeout_seconds=timeout_seconds)
        self.language = language or settings.ocr_language

        cmd = tesseract_cmd or settings.tesseract_cmd
        if cmd:
            pytesseract.pytesseract.tesseract_cmd = cmd

        logger.info("TesseractEngine initialized with language=%s", self.language)

    def _recognize_sync(self, content: bytes) -> str:
        with Image.open(io.BytesIO(content)) as image:
            image.load()
            # Palette and alpha modes (GIF, PNG with transparency) confuse the binarizer
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            return pytesseract.image_to_string(image, lang=self.language)

    async def recognize(self, content: bytes, mime_type: str) -> str:
        return await asyncio.to_thread(self._recognize_sync, content)

    async def health_check(self) -> bool:
        try:
            version = await asyncio.to_thread(pytesseract.get_tesseract_version)
            logger.debug("Tesseract version %s available", version)
            return True
        except Exception as e:
            logger.warning("Tesseract health check failed: %s", str(e))
            return False
