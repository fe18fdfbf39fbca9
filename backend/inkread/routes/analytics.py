"""
InkRead Backend — Analytics Route
===================================

What:  POST /api/analytics/track, appends one client event.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from inkread.database import get_db_session
from inkread.dependencies.auth import Caller, get_caller
from inkread.schemas.analytics import TrackEventRequest, TrackEventResponse
from inkread.schemas.common import ErrorResponse
from inkread.services.analytics_service import analytics_service

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.post(
    "/track",
    response_model=TrackEventResponse,
    responses={400: {"description": "Event type missing", "model": ErrorResponse}},
    summary="Record an analytics event",
)
async def track_event(
    request: TrackEventRequest,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db_session),
) -> TrackEventResponse:
    return await analytics_service.track(db, caller, request)
