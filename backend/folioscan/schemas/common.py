"""
FolioScan Backend — Shared API Schemas
=======================================

What:  Base model configuration and the response shapes shared by every router.
How:   All API models derive from ApiModel, which serialises field names in
       camelCase (`parentId`, `createdAt`) while Python code keeps snake_case.
       Incoming bodies are accepted in either spelling.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for request and response bodies: camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RenameRequest(ApiModel):
    """Body of PUT /folders/{id} and PUT /notes/{id}. Only the name can change."""

    name: str = Field(default="", description="New display name (non-empty)")


class MessageResponse(ApiModel):
    """Plain acknowledgement for updates and deletes."""

    message: str = Field(description="Human-readable outcome")


# ══════════════════════════════════════════════════════════════════════════
# Error Response Models — Consistent error format across all endpoints
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Fields:
        error: Machine-readable error code (e.g., "validation_error", "not_found")
        message: Human-readable description for display to users
        details: Optional extra context (e.g., which field failed validation)
        request_id: Correlation ID for tracing this error in server logs

    Example:
        {
            "error": "validation_error",
            "message": "Unsupported image type '.pdf'. Allowed: .gif, .jpeg, .jpg, .png, .webp",
            "details": {"field": "image"},
            "request_id": "550e8400"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(ApiModel):
    """
    What:  Health check response showing service and dependency status.
    Who:   Returned by GET /health for monitoring and load balancer health checks.
    """
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    blob_backend: str = Field(description="Active blob backend: local, drive or link")
    uptime_seconds: float = Field(description="Seconds since service started")
