"""
InkRead Backend — Processing Service (Business Logic Orchestrator)
====================================================================

What:  Runs one POST /api/process submission end to end.
How:   Composes QuotaService, BlobStore, OCRDispatcher and AnalyticsService.
Who:   Called by the process route handler.

Orchestration Flow:
    ┌──────────┐   ┌──────────┐   ┌───────────┐   ┌──────────────┐   ┌──────────┐
    │  Access  │──▶│ Validate │──▶│  Store    │──▶│  OCR / PDF   │──▶│  Charge  │
    │  gate    │   │  batch   │   │ blob + row│   │  (per file)  │   │  ledger  │
    └──────────┘   └──────────┘   └───────────┘   └──────────────┘   └──────────┘

    Validation covers the whole batch before anything is stored, so a bad
    third file never leaves blobs behind for the first two.

    On OCR failure the request fails with OCRServiceError and nothing is
    charged. Blobs and uploaded_files rows already written stay; they are
    committed per file and the cleanup job removes them after 24h.

The service is stateless: every call receives its db session and dispatcher.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inkread.config import settings
from inkread.database import utcnow
from inkread.dependencies.auth import Caller
from inkread.exceptions import DatabaseError, ValidationError
from inkread.models.upload import UploadedFile
from inkread.schemas.process import ProcessedFile, ProcessResponse
from inkread.services.analytics_service import AnalyticsService, analytics_service
from inkread.services.blob_store import BlobStore, blob_store as default_blob_store
from inkread.services.ocr_dispatch import PDF_MIME_TYPE, OCRDispatcher
from inkread.services.pdf_service import PDFService, pdf_service
from inkread.services.quota_service import QuotaService, quota_service

logger = logging.getLogger(__name__)

PROCESS_COMPLETED_EVENT = "process_completed"


@dataclass
class UploadedPayload:
    """One multipart file, already read into memory."""
    file_name: str
    mime_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class ProcessingService:

    def __init__(
        self,
        quota: Optional[QuotaService] = None,
        store: Optional[BlobStore] = None,
        pdf: Optional[PDFService] = None,
        analytics: Optional[AnalyticsService] = None,
    ):
        self.quota = quota or quota_service
        self._store = store
        self.pdf = pdf or pdf_service
        self.analytics = analytics or analytics_service

    @property
    def store(self) -> BlobStore:
        return self._store or default_blob_store

    async def process(
        self,
        db: AsyncSession,
        caller: Caller,
        uploads: Sequence[UploadedPayload],
        dispatcher: OCRDispatcher,
        now: Optional[datetime] = None,
    ) -> ProcessResponse:
        """
        Gate, validate, store, extract and charge.

        Args:
            db:         Request-scoped session (committed by get_db_session)
            caller:     Signed-in user or guest IP
            uploads:    Files of the submission, in upload order
            dispatcher: Routes each file to PDF extraction or the OCR engine
            now:        Clock override for tests

        Returns:
            ProcessResponse with combined text, per-file text and, for
            signed-in users, the remaining credits.

        Raises:
            QuotaExceededError: caller has no allowance (403)
            ValidationError: bad count, type, size or page count (400)
            FileStorageError: blob write failed (500)
            OCRServiceError: extraction failed for a file (500)
            DatabaseError: row insert or ledger update failed (500)
        """
        now = now or utcnow()

        # ── Step 1: Access gate ───────────────────────────────────────────
        await self.quota.require_access(db, caller, now)

        # ── Step 2: Validate the whole batch ──────────────────────────────
        await self.validate_batch(uploads)

        try:
            # ── Step 3: Store and extract, file by file ───────────────────
            results: List[ProcessedFile] = []
            for upload in uploads:
                await self._store_upload(db, caller, upload, now)
                text = await dispatcher.extract(upload.content, upload.mime_type, upload.file_name)
                results.append(
                    ProcessedFile(file_name=upload.file_name, mime_type=upload.mime_type, text=text)
                )

            combined = "\n\n".join(result.text for result in results).strip()

            # ── Step 4: Charge the caller ─────────────────────────────────
            remaining = await self.quota.consume(db, caller, now)
            await self.analytics.record(
                db,
                PROCESS_COMPLETED_EVENT,
                caller,
                {"fileCount": len(results), "characters": len(combined)},
            )
        except SQLAlchemyError as e:
            logger.error("Database error while processing batch for %s: %s", caller.storage_prefix, str(e))
            raise DatabaseError(context={"error_type": type(e).__name__})

        logger.info(
            "Processed %d file(s) for %s: %d chars, credits remaining %s",
            len(results),
            "guest " + caller.ip_address if caller.is_guest else "user " + caller.user_id,
            len(combined),
            remaining,
        )
        return ProcessResponse(text=combined, files=results, credits_remaining=remaining)

    async def validate_batch(self, uploads: Sequence[UploadedPayload]) -> None:
        """
        Raises:
            ValidationError on the first file that breaks a limit.
        """
        if not uploads:
            raise ValidationError(message="No files provided", field="files")

        max_files = settings.max_files_per_submission
        if len(uploads) > max_files:
            raise ValidationError(
                message=f"Maximum {max_files} files allowed",
                field="files",
                context={"file_count": len(uploads)},
            )

        max_mb = settings.max_file_size // (1024 * 1024)
        for upload in uploads:
            if upload.mime_type not in settings.allowed_mime_types:
                raise ValidationError(
                    message=f"Invalid file type: {upload.file_name}",
                    field="files",
                    context={"file_name": upload.file_name, "mime_type": upload.mime_type},
                )

            if upload.size > settings.max_file_size:
                raise ValidationError(
                    message=f"File too large: {upload.file_name}. Max {max_mb}MB",
                    field="files",
                    context={"file_name": upload.file_name, "size": upload.size},
                )

            if upload.mime_type == PDF_MIME_TYPE:
                pages = await self.pdf.count_pages(upload.content, upload.file_name)
                if pages > settings.max_pdf_pages:
                    raise ValidationError(
                        message=f"PDF has too many pages: {upload.file_name}. Max {settings.max_pdf_pages} pages",
                        field="files",
                        context={"file_name": upload.file_name, "pages": pages},
                    )

    async def _store_upload(
        self,
        db: AsyncSession,
        caller: Caller,
        upload: UploadedPayload,
        now: datetime,
    ) -> UploadedFile:
        key = self.store.build_object_key(caller.storage_prefix, upload.file_name, now)
        await self.store.upload(key, upload.content)

        row = UploadedFile(
            user_id=caller.user_id,
            ip_address=caller.ip_address,
            file_name=upload.file_name,
            file_path=key,
            file_size=upload.size,
            mime_type=upload.mime_type,
        )
        db.add(row)
        # Committed now so the cleanup job can find the blob even if OCR fails
        await db.commit()
        logger.debug("Recorded upload %s as %s", upload.file_name, key)
        return row


processing_service = ProcessingService()
