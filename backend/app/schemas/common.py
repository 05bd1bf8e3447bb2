"""
SpecDate Backend — Shared Response Envelopes
==============================================

What:  The envelopes every endpoint answers with.
Why:   The mobile client unwraps one shape everywhere.

    success:  {"success": true,  "data": ..., "message": "..."}
    failure:  {"success": false, "error": "<code>", "message": "...",
               "details": {...}, "request_id": "..."}
    page:     {"current_page", "data", "last_page", "per_page", "total"}
"""

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = Field(default=True)
    data: Optional[T] = Field(default=None)
    message: Optional[str] = Field(default=None)


class Page(BaseModel, Generic[T]):
    """Offset pagination, 1-based pages."""
    current_page: int
    data: List[T]
    last_page: int
    per_page: int
    total: int


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "success": false,
            "error": "forbidden",
            "message": "Insufficient Blue Sparks. Please purchase more.",
            "details": {"code": "INSUFFICIENT_FUNDS"},
            "request_id": "3f2a9c1e"
        }
    """
    success: bool = Field(default=False)
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Field errors or extra context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    push: str = Field(description="Expo push gateway: available, circuit_open")
    broadcasting: str = Field(description="Realtime broadcasting: enabled, disabled, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope for route handlers."""
    return {"success": True, "data": data, "message": message}
