"""Unified API response format and error codes."""

from typing import Any

from pydantic import BaseModel, Field


class APIError(BaseModel):
    """Error details in API response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Any | None = Field(None, description="Field-level validation errors, when any")


class APIResponse(BaseModel):
    """
    Unified response format for all API endpoints.

    Every endpoint returns this structure, making client parsing predictable.
    List endpoints put pagination and stage counts in meta.
    """

    success: bool
    data: Any | None = None
    message: str | None = None
    meta: dict[str, Any] | None = None
    error: APIError | None = None


def success_response(
    data: Any,
    message: str | None = None,
    meta: dict[str, Any] | None = None,
) -> APIResponse:
    """Create a success response."""
    return APIResponse(success=True, data=data, message=message, meta=meta)


def error_response(code: str, message: str, details: Any | None = None) -> APIResponse:
    """Create an error response."""
    return APIResponse(
        success=False,
        error=APIError(code=code, message=message, details=details),
    )


def dump(model: BaseModel) -> dict[str, Any]:
    """Wire form of a domain model: camelCase keys, JSON-safe values."""
    return model.model_dump(mode="json", by_alias=True)


class ErrorCodes:
    """Standard error codes for consistent error handling."""

    # Resource Errors
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"
