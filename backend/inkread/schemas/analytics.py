"""Schemas for POST /api/analytics/track."""

from typing import Any, Dict, Optional

from pydantic import Field

from inkread.schemas.common import CamelModel


class TrackEventRequest(CamelModel):
    # Optional so a missing type yields our 400 message instead of a 422
    event_type: Optional[str] = Field(default=None, description="Event name, e.g. 'upload_started'")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TrackEventResponse(CamelModel):
    success: bool = True
