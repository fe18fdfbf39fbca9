"""
InkRead Backend — Process Route Handler
=========================================

What:  POST /api/process, the OCR submission endpoint.
How:   Reads every multipart `files` part into memory, resolves the caller
       and hands the batch to ProcessingService.
Who:   Called by the frontend upload form.

Parts are read whole before ProcessingService runs the count and size
checks, so an oversized request is buffered before it is rejected. Request
body limits belong to the reverse proxy in front of uvicorn.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from inkread.database import get_db_session
from inkread.dependencies.auth import Caller, get_caller
from inkread.schemas.common import ErrorResponse
from inkread.schemas.process import ProcessResponse
from inkread.services.ocr_dispatch import OCRDispatcher, get_ocr_dispatcher
from inkread.services.processing_service import UploadedPayload, processing_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Process"])


@router.post(
    "/process",
    response_model=ProcessResponse,
    responses={
        400: {"description": "Bad file count, type, size or page count", "model": ErrorResponse},
        403: {"description": "No credits left or guest trial used", "model": ErrorResponse},
        429: {"description": "Rate limit exceeded", "model": ErrorResponse},
        500: {"description": "Storage, OCR or database failure", "model": ErrorResponse},
    },
    summary="Extract text from uploaded files",
    description=(
        "Upload up to 3 files (JPEG, PNG, GIF, WebP or PDF, max 5MB each, PDFs up to "
        "20 pages). Images go through OCR, PDFs through text extraction. "
        "A successful request costs one credit, or the guest's free use."
    ),
)
async def process_files(
    files: Optional[List[UploadFile]] = File(
        default=None,
        description="One to three files, repeated under the `files` field",
    ),
    caller: Caller = Depends(get_caller),
    dispatcher: OCRDispatcher = Depends(get_ocr_dispatcher),
    db: AsyncSession = Depends(get_db_session),
) -> ProcessResponse:
    uploads: List[UploadedPayload] = []
    try:
        for upload in files or []:
            content = await upload.read()
            uploads.append(
                UploadedPayload(
                    file_name=upload.filename or "upload",
                    mime_type=upload.content_type or "application/octet-stream",
                    content=content,
                )
            )
    finally:
        for upload in files or []:
            await upload.close()

    logger.info(
        "Received process request: %d file(s), %d bytes, %s",
        len(uploads),
        sum(u.size for u in uploads),
        "guest" if caller.is_guest else "user " + caller.user_id,
    )

    return await processing_service.process(
        db=db,
        caller=caller,
        uploads=uploads,
        dispatcher=dispatcher,
    )
