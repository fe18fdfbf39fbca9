"""
InkRead Backend — Uploaded File Model
=======================================

What:  Metadata row for every object written to the upload bucket.
Who:   Inserted by ProcessingService; selected and deleted by CleanupService.

Rows and blobs share a lifetime: both are removed by the cleanup job once
`created_at` is older than the retention window. The `created_at` index
serves that cutoff scan.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from inkread.database import Base, utcnow


class UploadedFile(Base):
    """One uploaded original, stored at `file_path` inside the upload bucket."""

    __tablename__ = "uploaded_files"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # NULL for guest uploads
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    ip_address: Mapped[str] = mapped_column(String(45), nullable=False)

    file_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Original client-side file name",
    )

    # Format: <user_id or ip>/<epoch_millis>-<rand8>-<file_name>
    file_path: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        comment="Object key inside the upload bucket",
    )

    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)

    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_uploaded_files_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<UploadedFile(id={self.id}, file_path='{self.file_path}', "
            f"created_at='{self.created_at}')>"
        )
