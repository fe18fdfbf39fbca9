"""
InkRead Backend — Processing Schemas
======================================

What:  Response of POST /api/process.

Why both `text` and `files`:
    - text: every file's text joined with blank lines, for immediate display
    - files: per-file results, so the client can label output by source file
"""

from typing import List, Optional

from pydantic import Field

from inkread.schemas.common import CamelModel


class ProcessedFile(CamelModel):
    file_name: str = Field(description="Original file name as uploaded")
    mime_type: str = Field(description="Declared content type")
    text: str = Field(description="Text extracted from this file")


class ProcessResponse(CamelModel):
    text: str = Field(description="Combined text of all files, trimmed")
    files: List[ProcessedFile] = Field(default_factory=list)
    credits_remaining: Optional[int] = Field(
        default=None,
        description="Balance after this request for signed-in users (null for guests)",
    )
