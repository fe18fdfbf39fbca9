"""
InkRead Backend — Upload Blob Store
=====================================

What:  Writes uploaded originals into the upload bucket and removes them.
How:   The bucket is a directory, <storage_root>/<upload_bucket>
       (default ./storage/temp-uploads). Objects are addressed by a
       relative key; writes and deletes go through aiofiles so the event
       loop is not blocked on disk I/O.
Who:   ProcessingService (upload), CleanupService (remove).

Object key format:
    <user_id or ip>/<epoch_millis>-<rand8>-<file_name>

    e.g. 3f1c.../1718000000000-9a1b2c3d-page1.png
         203.0.113.7/1718000000000-0f9e8d7c-notes.pdf

    Both path segments are sanitized (no separators, no "..", only
    [A-Za-z0-9._-]) and every resolved path is checked to stay inside
    the bucket root. The random fragment keeps two same-named files
    uploaded in the same millisecond apart.

Objects are temporary: the cleanup job deletes them together with their
uploaded_files rows after the retention window.
"""

import logging
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

import aiofiles
import aiofiles.os

from inkread.config import settings
from inkread.database import utcnow
from inkread.exceptions import FileStorageError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _safe_segment(value: str, fallback: str) -> str:
    # Path(...).name drops any directory part a client smuggled into the name
    cleaned = _UNSAFE_CHARS.sub("_", Path(value).name).strip("._")
    return cleaned[:200] or fallback


class BlobStore:
    """
    Bucket-backed storage for uploaded files.

    Directory Structure:
        storage/
        └── temp-uploads/
            ├── <user-id>/
            │   └── 1718000000000-9a1b2c3d-page1.png
            └── 203.0.113.7/
                └── 1718000000000-0f9e8d7c-notes.pdf
    """

    def __init__(self, storage_root: Optional[str] = None, bucket: Optional[str] = None):
        """
        Args:
            storage_root: Override settings.storage_root (used in tests).
            bucket:       Override settings.upload_bucket.
        """
        self.bucket = bucket or settings.upload_bucket
        self.bucket_root = (Path(storage_root or settings.storage_root) / self.bucket).resolve()
        self.bucket_root.mkdir(parents=True, exist_ok=True)
        logger.info("BlobStore initialized with bucket_root=%s", self.bucket_root)

    def build_object_key(
        self,
        owner: str,
        file_name: str,
        now: Optional[datetime] = None,
    ) -> str:
        """Object key for a new upload owned by a user id or guest IP."""
        timestamp_ms = int((now or utcnow()).timestamp() * 1000)
        owner_segment = _safe_segment(owner, "unknown")
        name_segment = _safe_segment(file_name, "upload")
        return f"{owner_segment}/{timestamp_ms}-{uuid.uuid4().hex[:8]}-{name_segment}"

    def resolve(self, key: str) -> Path:
        """
        Absolute path of an object key.

        Raises:
            FileStorageError if the key escapes the bucket root.
        """
        path = (self.bucket_root / key).resolve()
        if not path.is_relative_to(self.bucket_root):
            raise FileStorageError(
                message="Invalid storage path.",
                context={"key": key},
            )
        return path

    async def upload(self, key: str, content: bytes) -> str:
        """
        Write an object. Returns the key.

        Raises:
            FileStorageError if the directory or file cannot be written.
        """
        path = self.resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store object %s: %s", key, str(e))
            raise FileStorageError(
                message="Failed to save uploaded file. Please try again.",
                context={"key": key, "os_error": str(e)},
            )

        logger.info("Object stored: %s/%s (%d bytes)", self.bucket, key, len(content))
        return key

    async def remove(self, keys: Iterable[str]) -> List[str]:
        """
        Delete objects. Missing objects count as removed.

        Returns:
            Keys that could not be deleted. Failures are logged, not raised,
            so one bad object does not block the rest of a cleanup run.
        """
        failed: List[str] = []
        for key in keys:
            try:
                await aiofiles.os.remove(self.resolve(key))
                logger.debug("Removed object: %s", key)
            except FileNotFoundError:
                logger.debug("Object already gone: %s", key)
            except (OSError, FileStorageError) as e:
                logger.warning("Failed to remove object %s: %s", key, str(e))
                failed.append(key)
        return failed

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.exists(self.resolve(key))


blob_store = BlobStore()
