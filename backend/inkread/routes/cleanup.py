"""
InkRead Backend — Cleanup Job Route
=====================================

What:  POST /api/cleanup, deletes uploads older than the retention window.
Who:   An external scheduler (cron, Vercel/Supabase scheduled function)
       holding CLEANUP_SECRET_TOKEN.

Authorization: `Authorization: Bearer <CLEANUP_SECRET_TOKEN>`. With no
token configured every call is rejected.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from inkread.config import settings
from inkread.database import get_db_session
from inkread.exceptions import UnauthorizedError
from inkread.schemas.common import CleanupResponse, ErrorResponse
from inkread.services.cleanup_service import cleanup_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Maintenance"])


async def verify_cleanup_token(authorization: Optional[str] = Header(default=None)) -> None:
    """
    Raises:
        UnauthorizedError: token missing, wrong, or not configured
    """
    expected = settings.cleanup_secret_token
    if not expected:
        logger.error("Cleanup called but CLEANUP_SECRET_TOKEN is not configured")
        raise UnauthorizedError()

    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError()

    provided = authorization[len("Bearer "):].strip()
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Cleanup called with an invalid token")
        raise UnauthorizedError()


@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    dependencies=[Depends(verify_cleanup_token)],
    responses={
        401: {"description": "Missing or invalid bearer token", "model": ErrorResponse},
        500: {"description": "Row deletion failed", "model": ErrorResponse},
    },
    summary="Delete expired uploads",
)
async def run_cleanup(db: AsyncSession = Depends(get_db_session)) -> CleanupResponse:
    return await cleanup_service.run(db)
