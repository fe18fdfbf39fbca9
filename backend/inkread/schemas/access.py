"""
InkRead Backend — Access Gate Schema
======================================

Returned by GET /api/access/check and used internally by the process flow.

Shapes:
    Signed-in user:   {allowed, credits, resetAt}
    Guest, unused IP: {allowed: true, isGuest: true}
    Guest, used IP:   {allowed: false, requiresAuth: true, reason}
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from inkread.schemas.common import CamelModel


class AccessStatus(CamelModel):
    allowed: bool = Field(description="Whether the caller may submit files now")
    credits: Optional[int] = Field(
        default=None,
        description="Remaining credits for signed-in users (null for guests)",
    )
    reset_at: Optional[datetime] = Field(
        default=None,
        description="When credits are restored (only set at 0 credits)",
    )
    requires_auth: Optional[bool] = Field(
        default=None,
        description="True when a guest has used the free trial and must sign in",
    )
    is_guest: Optional[bool] = Field(default=None)
    reason: Optional[str] = Field(default=None, description="Human-readable denial reason")
