"""API modules for HTTP interface."""

from api.base import (
    APIError,
    APIResponse,
    success_response,
    error_response,
    ErrorCodes,
)
