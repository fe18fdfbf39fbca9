"""
InkRead Backend — Access Check Route
======================================

What:  GET /api/access/check, the caller's current allowance.
Who:   The frontend, before showing the upload form.

Every response carries allowed, credits, resetAt and requiresAuth (null when
not applicable). Guests also get isGuest, and a denied guest gets a
reason.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from inkread.database import get_db_session
from inkread.dependencies.auth import Caller, get_caller
from inkread.schemas.access import AccessStatus
from inkread.services.quota_service import quota_service

router = APIRouter(prefix="/api/access", tags=["Access"])


@router.get(
    "/check",
    response_model=AccessStatus,
    summary="Check processing allowance",
)
async def check_access(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db_session),
) -> AccessStatus:
    return await quota_service.check_access(db, caller)
