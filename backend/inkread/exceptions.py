"""
InkRead Backend — Custom Exception Hierarchy
==============================================

What:  Application-specific exceptions for the error scenarios of the API.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and dependencies; caught by global handlers.

Exception Hierarchy:
    InkReadError (base)
    ├── ValidationError          → 400 Bad Request (bad type/size/count/pages)
    ├── UnauthorizedError        → 401 Unauthorized (cleanup bearer token)
    ├── QuotaExceededError       → 403 Forbidden (no credits / guest trial used)
    ├── FileStorageError         → 500 Internal Server Error
    ├── OCRServiceError          → 500 Internal Server Error (OCR/PDF failure)
    └── DatabaseError            → 500 Internal Server Error

The `message` is safe to return to the client. The `context` dict is logged
server-side; handlers decide which parts of it reach the response.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class InkReadError(Exception):
    """
    Base exception for all InkRead application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, selectively returned)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(InkReadError):
    """
    Raised when client input fails validation.

    When:    No files, too many files, disallowed MIME type, file too large,
             PDF with too many pages, analytics event without a type.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "File too large: notes.png. Max 5MB",
            "details": {"field": "files", "file_name": "notes.png"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthorizedError(InkReadError):
    """Raised when a protected job endpoint is called without the right bearer token (401)."""

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class QuotaExceededError(InkReadError):
    """
    Raised when the caller has no processing allowance left.

    HTTP:    403 Forbidden

    Two shapes:
        - Guest whose IP already used the free trial → requires_auth=True
        - Signed-in user with 0 credits → reset_at tells when credits return
    """

    def __init__(
        self,
        message: str = "No credits remaining",
        requires_auth: bool = False,
        reset_at: Optional[datetime] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.requires_auth = requires_auth
        self.reset_at = reset_at


class FileStorageError(InkReadError):
    """
    Raised when blob storage operations fail.

    When:    Disk full, permission denied, bucket not writable, I/O error.
    HTTP:    500 Internal Server Error (storage paths are never returned)
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class OCRServiceError(InkReadError):
    """
    Raised when text extraction fails for a file.

    When:    The OCR engine raised or exceeded its timeout, or the PDF
             text extractor could not read the document.
    HTTP:    500 Internal Server Error

    The whole request fails; no credit is consumed for it.
    """

    def __init__(
        self,
        message: str = "OCR processing failed",
        file_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if file_name:
            ctx["file_name"] = file_name
        super().__init__(message=message, context=ctx)
        self.file_name = file_name


class DatabaseError(InkReadError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error. The client always gets a generic
             message; SQL and constraint details stay in server logs.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
