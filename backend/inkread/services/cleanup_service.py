"""
InkRead Backend — Upload Cleanup Job
======================================

What:  Deletes uploaded blobs and their uploaded_files rows once they are
       older than the retention window (24h).
Who:   POST /api/cleanup, called by an external scheduler.

Order of operations:
    1. Select rows with created_at < now - retention
    2. Remove their blobs (per-object failures are logged, not raised)
    3. Delete the rows

The two stores are not updated atomically. If step 3 fails after step 2,
rows whose blobs are already gone remain; the error is logged and the next
run picks the rows up again (removing a missing blob is a no-op).
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from inkread.config import settings
from inkread.database import utcnow
from inkread.exceptions import DatabaseError
from inkread.models.upload import UploadedFile
from inkread.schemas.common import CleanupResponse
from inkread.services.blob_store import BlobStore, blob_store as default_blob_store

logger = logging.getLogger(__name__)


class CleanupService:

    def __init__(
        self,
        store: Optional[BlobStore] = None,
        retention_hours: Optional[int] = None,
    ):
        self._store = store
        self.retention = timedelta(hours=retention_hours or settings.upload_retention_hours)

    @property
    def store(self) -> BlobStore:
        return self._store or default_blob_store

    async def run(self, db: AsyncSession, now: Optional[datetime] = None) -> CleanupResponse:
        cutoff = (now or utcnow()) - self.retention

        result = await db.execute(
            select(UploadedFile.id, UploadedFile.file_path).where(UploadedFile.created_at < cutoff)
        )
        expired = result.all()

        if not expired:
            logger.info("Cleanup: no uploads older than %s", cutoff.isoformat())
            return CleanupResponse(message="No files to clean up", deleted_count=0)

        file_ids = [row.id for row in expired]
        failed = await self.store.remove(row.file_path for row in expired)
        if failed:
            logger.error(
                "Cleanup: %d of %d blobs could not be removed: %s",
                len(failed),
                len(expired),
                ", ".join(failed[:10]),
            )

        try:
            await db.execute(delete(UploadedFile).where(UploadedFile.id.in_(file_ids)))
            await db.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Cleanup: blobs removed but %d rows could not be deleted: %s",
                len(file_ids),
                str(e),
            )
            raise DatabaseError(
                message="Cleanup failed",
                context={"pending_rows": len(file_ids), "error_type": type(e).__name__},
            )

        logger.info("Cleanup completed: %d uploads older than %s removed", len(expired), cutoff.isoformat())
        return CleanupResponse(message="Cleanup completed", deleted_count=len(expired))


cleanup_service = CleanupService()
