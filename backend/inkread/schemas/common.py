"""
InkRead Backend — Shared Schemas
==================================

What:  Base model with camelCase aliases, plus the error, health and
       cleanup response models used across routers.
How:   FastAPI serializes response models by alias, so every subclass of
       CamelModel goes out as camelCase JSON; inputs accept either form.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every API model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ErrorResponse(CamelModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "quota_exceeded",
            "message": "Free trial used",
            "requiresAuth": true,
            "requestId": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    requires_auth: Optional[bool] = Field(default=None, description="Guest trial used; sign in to continue")
    reset_at: Optional[datetime] = Field(default=None, description="When a signed-in user's credits return")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(CamelModel):
    """Returned by GET /health for monitoring and load balancer health checks."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    ocr_engine: str = Field(description="OCR engine status: available, unavailable")
    uptime_seconds: float = Field(description="Seconds since service started")


class CleanupResponse(CamelModel):
    """Result of one cleanup job run."""
    message: str
    deleted_count: int = Field(description="Number of uploaded_files rows removed")
