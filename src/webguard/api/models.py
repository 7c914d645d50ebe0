"""Request/response models for the REST API layer."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from webguard import __version__


class UrlCheckRequest(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={"example": {"url": "https://example.com/feed.xml"}},
    )

    url: str = Field(
        ...,
        min_length=1,
        max_length=2048,
        description="URL the server would fetch on the caller's behalf.",
        examples=["https://example.com/feed.xml"],
    )


class UrlCheckResponse(BaseModel):
    url: str = Field(..., description="The validated URL, whitespace-stripped.")
    allowed: bool = Field(True, description="Always true; rejected URLs return an error.")


class UploadValidationResponse(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "filename": "my_photo.jpg",
                "stored_name": "0b3c2f64-3f1e-4f0e-9b5a-3c1f0f6c2d11.jpg",
                "content_type": "image/jpeg",
                "size": 48213,
            }
        }
    )

    filename: str = Field(..., description="Client filename with unsafe characters replaced.")
    stored_name: str = Field(..., description="Collision-free storage key for the file.")
    content_type: str = Field(..., description="Verified MIME type.")
    size: int = Field(..., ge=1, description="File size in bytes.")


class SessionResponse(BaseModel):
    authenticated: bool = Field(..., description="Whether a verified session is present.")
    user_id: str | None = Field(None, description="Authenticated user identifier.")
    email: str | None = Field(None, description="Authenticated user email, when known.")


class HealthResponse(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "service": "webguard",
                "version": __version__,
                "timestamp": "2024-01-01T00:00:00+00:00",
                "services": {"auth": True},
            }
        }
    )

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        "healthy", description="Overall status; anything but healthy is served with HTTP 503."
    )
    service: str = Field("webguard", description="Service identifier.")
    version: str = Field(__version__, description="Service version.")
    timestamp: str = Field(..., description="UTC time of the check (ISO 8601).")
    services: dict[str, bool | None] = Field(
        default_factory=dict,
        description="Per-dependency reachability; null when the dependency is not configured.",
    )
    error: str | None = Field(None, description="Error type when the check itself failed.")


class ErrorResponse(BaseModel):
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "blocked_host",
                "message": "Blocked host: localhost",
            }
        }
    )

    error: str = Field(..., description="Machine-readable error key.")
    message: str = Field(..., description="Human-readable error message.")
    details: list[dict[str, Any]] | None = Field(
        None,
        description="Optional structured details for validation errors.",
    )
