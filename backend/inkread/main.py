"""
InkRead Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers.
Who:   uvicorn (`uvicorn inkread.main:app`) and the test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware:  Rate Limit → Request ID → Logging → CORS   │
    │                                                          │
    │  Routes:                                                 │
    │    GET  /api/access/check     POST /api/process          │
    │    POST /api/analytics/track  POST /api/cleanup          │
    │    GET  /health                                          │
    │                                                          │
    │  Exception Handlers:                                     │
    │    Validation→400  Unauthorized→401  Quota→403           │
    │    Storage/OCR/DB→500  anything else→500                 │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, config validation (logged, not fatal), upload bucket
    Shutdown: dispose the database engine
"""

import logging
import sys
import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from inkread import __version__
from inkread.config import settings
from inkread.database import dispose_engine
from inkread.exceptions import (
    DatabaseError,
    FileStorageError,
    InkReadError,
    OCRServiceError,
    QuotaExceededError,
    UnauthorizedError,
    ValidationError,
)
from inkread.middleware.logging import RequestLoggingMiddleware
from inkread.middleware.rate_limit import RateLimitMiddleware
from inkread.middleware.request_id import RequestIDMiddleware, request_id_var
from inkread.routes import access, analytics, cleanup, health, process
from inkread.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

class RequestIdFilter(logging.Filter):
    """Stamps every record with the current request ID ("-" outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True


def setup_logging() -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "PIL", "PyPDF2"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("InkRead Backend %s starting (%s)", __version__, settings.environment)
    logger.info("Listening on %s:%d", settings.backend_host, settings.backend_port)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: health checks still need to answer
        logger.error("Configuration error: %s", str(e))

    from inkread.services.blob_store import blob_store
    logger.info("Upload bucket: %s", blob_store.bucket_root)
    logger.info("OCR engine: %s (timeout %gs)", settings.ocr_engine, settings.ocr_timeout_seconds)

    yield

    logger.info("InkRead Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    **fields: Any,
) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=message,
        details=details,
        **fields,
        request_id=request_id_var.get("") or None,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the InkReadError hierarchy to HTTP responses.

    Storage, OCR and database context is logged here and never returned;
    only the exception message reaches the client.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error: %s", exc.message)
        return error_response(400, "validation_error", exc.message, details=exc.context or None)

    @app.exception_handler(UnauthorizedError)
    async def handle_unauthorized(request: Request, exc: UnauthorizedError):
        return error_response(
            401,
            "unauthorized",
            exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(QuotaExceededError)
    async def handle_quota_exceeded(request: Request, exc: QuotaExceededError):
        # Top level, same as the access check body
        return error_response(
            403,
            "quota_exceeded",
            exc.message,
            requires_auth=exc.requires_auth or None,
            reset_at=exc.reset_at,
        )

    @app.exception_handler(OCRServiceError)
    async def handle_ocr_error(request: Request, exc: OCRServiceError):
        logger.error("OCR error: %s | Context: %s", exc.message, exc.context)
        details = {"fileName": exc.file_name} if exc.file_name else None
        return error_response(500, "ocr_failed", exc.message, details=details)

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error("File storage error: %s | Context: %s", exc.message, exc.context)
        return error_response(500, "server_error", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(InkReadError)
    async def handle_inkread_error(request: Request, exc: InkReadError):
        logger.error("Unhandled application error %s: %s", type(exc).__name__, exc.message)
        return error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        details = None
        if settings.is_development:
            details = {
                "type": type(exc).__name__,
                "traceback": traceback.format_exception(type(exc), exc, exc.__traceback__),
            }
        return error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again later.",
            details=details,
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="InkRead API",
        description=(
            "Text extraction for images and PDFs. Signed-in users get "
            f"{settings.authenticated_credits} submissions per {settings.credit_reset_hours}h; "
            "guests get one free submission."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(access.router)
    app.include_router(process.router)
    app.include_router(analytics.router)
    app.include_router(cleanup.router)
    app.include_router(health.router)

    return app


app = create_app()
