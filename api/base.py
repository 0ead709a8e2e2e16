"""Unified API response format and error codes."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from utils.timezone import now_utc


class APIError(BaseModel):
    """Error details in API response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    field_errors: dict[str, str] | None = Field(
        default=None, description="Per-field messages for validation errors"
    )
    recovery: str | None = Field(
        default=None, description="What the client should do next, e.g. 'login'"
    )
    retryable: bool = Field(default=False, description="Safe to retry the same request")


class APIMeta(BaseModel):
    """Metadata included in every API response."""

    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Unique request identifier for tracing")


class APIResponse(BaseModel):
    """
    Unified response format for all API endpoints.

    Every endpoint returns this structure, making client parsing predictable.
    """

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def success_response(data: Any) -> APIResponse:
    """Create a success response."""
    return APIResponse(
        success=True,
        data=data,
        error=None,
        meta=APIMeta(
            timestamp=now_utc(),
            request_id=str(uuid4()),
        ),
    )


def error_response(
    code: str,
    message: str,
    field_errors: dict[str, str] | None = None,
    recovery: str | None = None,
    retryable: bool = False,
) -> APIResponse:
    """Create an error response."""
    return APIResponse(
        success=False,
        data=None,
        error=APIError(
            code=code,
            message=message,
            field_errors=field_errors,
            recovery=recovery,
            retryable=retryable,
        ),
        meta=APIMeta(
            timestamp=now_utc(),
            request_id=str(uuid4()),
        ),
    )


class ErrorCodes:
    """
    Standard error codes for consistent error handling.

    Auth codes come with recovery="login": the client returns the user to the
    login screen and shows the message.
    """

    # Authentication
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_CODE = "INVALID_CODE"
    STAFF_INACTIVE = "STAFF_INACTIVE"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    WRONG_BUSINESS = "WRONG_BUSINESS"
    RATE_LIMITED = "RATE_LIMITED"

    # Authorization
    ACCESS_DENIED = "ACCESS_DENIED"
    TECHNICIAN_NOT_RESOLVED = "TECHNICIAN_NOT_RESOLVED"

    # Tenant routing
    BUSINESS_NOT_FOUND = "BUSINESS_NOT_FOUND"

    # Resource Errors
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    BAD_REQUEST = "BAD_REQUEST"

    # Ticket Lifecycle
    TICKET_ALREADY_COMPLETED = "TICKET_ALREADY_COMPLETED"

    # Roster
    LOGIN_CODE_IN_USE = "LOGIN_CODE_IN_USE"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    EMAIL_UNAVAILABLE = "EMAIL_UNAVAILABLE"
