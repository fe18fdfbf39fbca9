"""
InkRead Backend — Google Gemini OCR Engine
============================================

What:  Image OCR through the Gemini vision model.
How:   Sends the image bytes inline together with a transcription prompt and
       returns the model's text. Selected with OCR_ENGINE=gemini.
Who:   Instantiated once by get_ocr_engine(); called by OCRDispatcher.

Gemini handles cursive and messy handwriting better than Tesseract at the
cost of an API key and network latency. Calls are not retried: a failure or
timeout fails the request (see OCREngine.extract_text).
"""

import asyncio
import logging
from typing import Optional

import google.generativeai as genai

from inkread.config import settings
from inkread.services.ocr_base import OCREngine

logger = logging.getLogger(__name__)


class GeminiEngine(OCREngine):
    """Gemini Vision API implementation of OCREngine."""

    name = "gemini"

    TRANSCRIBE_PROMPT = """You are an expert handwriting recognition system. Transcribe ALL
text in this image, handwritten or printed, with high accuracy.

Instructions:
1. Preserve the original text structure (paragraphs, line breaks, bullet points)
2. If text is unclear, provide your best interpretation with [unclear] markers
3. Maintain any numbering, bullets, or list formatting
4. Preserve mathematical notation if present
5. Return ONLY the transcribed text, with no commentary or description of the image
6. If the image contains no text, return an empty response

Transcribe the text in this image:"""

    def __init__(self, timeout_seconds: Optional[float] = None):
        super().__init__(timeout_seconds=timeout_seconds)

        # The SDK keeps the API key in module-level state
        if settings.gemini_api_key:
            genai.configure(api_key=settings.gemini_api_key)

        self.model = genai.GenerativeModel(settings.gemini_model)
        logger.info("GeminiEngine initialized with model=%s", settings.gemini_model)

    async def recognize(self, content: bytes, mime_type: str) -> str:
        response = await self.model.generate_content_async(
            [self.TRANSCRIBE_PROMPT, {"mime_type": mime_type, "data": content}],
        )
        return response.text.strip() if response.text else ""

    async def health_check(self) -> bool:
        """
        Lists available models (no token cost) to verify key and connectivity.
        """
        try:
            models = await asyncio.to_thread(lambda: list(genai.list_models()))
            target = f"models/{settings.gemini_model}"
            if target not in [m.name for m in models]:
                logger.warning("Configured model %s not found in available models", target)
            return True
        except Exception as e:
            logger.warning("Gemini health check failed: %s", str(e))
            return False
