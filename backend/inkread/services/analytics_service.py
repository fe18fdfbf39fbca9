"""
InkRead Backend — Analytics Service
=====================================

What:  Appends events to the analytics_events log.
Who:   POST /api/analytics/track (client events) and ProcessingService
       (server-side `process_completed`).

The log is write-only from the application's point of view: nothing here
reads, updates or deletes events.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from inkread.dependencies.auth import Caller
from inkread.exceptions import ValidationError
from inkread.models.analytics import AnalyticsEvent
from inkread.schemas.analytics import TrackEventRequest, TrackEventResponse

logger = logging.getLogger(__name__)

MAX_EVENT_TYPE_LENGTH = 100


class AnalyticsService:

    async def record(
        self,
        db: AsyncSession,
        event_type: str,
        caller: Caller,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AnalyticsEvent:
        event = AnalyticsEvent(
            event_type=event_type,
            user_id=caller.user_id,
            ip_address=caller.ip_address,
            event_metadata=metadata or {},
        )
        db.add(event)
        await db.flush()
        logger.debug("Recorded analytics event %s for %s", event_type, caller.user_id or caller.ip_address)
        return event

    async def track(
        self,
        db: AsyncSession,
        caller: Caller,
        request: TrackEventRequest,
    ) -> TrackEventResponse:
        """
        Record a client-reported event.

        Raises:
            ValidationError: event type missing or too long
        """
        event_type = (request.event_type or "").strip()
        if not event_type:
            raise ValidationError(message="Event type required", field="eventType")
        if len(event_type) > MAX_EVENT_TYPE_LENGTH:
            raise ValidationError(
                message=f"Event type must be at most {MAX_EVENT_TYPE_LENGTH} characters",
                field="eventType",
            )

        await self.record(db, event_type, caller, request.metadata)
        return TrackEventResponse(success=True)


analytics_service = AnalyticsService()
