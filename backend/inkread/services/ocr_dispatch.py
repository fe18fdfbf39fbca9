"""
InkRead Backend — OCR Dispatch
================================

What:  Routes one uploaded file to the right text extractor.
How:   application/pdf → PDFService text layer; every allowed image type →
       the configured OCREngine (with its timeout).
Who:   ProcessingService, once per file after the blob and row are stored.

`get_ocr_engine` and `get_ocr_dispatcher` double as FastAPI dependencies so
tests can swap the engine with `app.dependency_overrides`.
"""

import logging
from typing import Dict, Optional

from fastapi import Depends

from inkread.config import settings
from inkread.services.gemini_engine import GeminiEngine
from inkread.services.ocr_base import OCREngine
from inkread.services.pdf_service import PDFService, pdf_service
from inkread.services.tesseract_engine import TesseractEngine

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"

_ENGINE_CLASSES = {
    "tesseract": TesseractEngine,
    "gemini": GeminiEngine,
}

# One engine per process; Gemini holds configured SDK state
_engines: Dict[str, OCREngine] = {}


def get_ocr_engine() -> OCREngine:
    """The singleton engine selected by OCR_ENGINE."""
    name = settings.ocr_engine
    if name not in _engines:
        _engines[name] = _ENGINE_CLASSES[name]()
    return _engines[name]


class OCRDispatcher:
    def __init__(self, engine: OCREngine, pdf: Optional[PDFService] = None):
        self.engine = engine
        self.pdf = pdf or pdf_service

    async def extract(self, content: bytes, mime_type: str, file_name: str) -> str:
        """
        Plain text of one file.

        Raises:
            OCRServiceError: extraction failed (message names the file)
        """
        if mime_type == PDF_MIME_TYPE:
            logger.debug("Dispatching %s to PDF text extraction", file_name)
            return await self.pdf.extract_text(content, file_name)

        logger.debug("Dispatching %s to %s OCR", file_name, self.engine.name)
        return await self.engine.extract_text(content, mime_type, file_name)


def get_ocr_dispatcher(engine: OCREngine = Depends(get_ocr_engine)) -> OCRDispatcher:
    return OCRDispatcher(engine=engine)
