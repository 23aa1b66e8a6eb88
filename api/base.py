"""Unified API response envelope and error codes."""

from typing import Any
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field
from starlette.requests import Request

from utils.timezone import now_utc


class APIError(BaseModel):
    """Error details in API response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")


class APIMeta(BaseModel):
    """Metadata included in every API response."""

    timestamp: datetime = Field(..., description="Response timestamp (UTC)")
    request_id: str = Field(..., description="Request identifier, echoed in X-Request-ID")


class APIResponse(BaseModel):
    """
    Envelope returned by every pipeline entry point.

    {success, data, error, meta}; exactly one of data / error is set.
    """

    success: bool
    data: Any | None = None
    error: APIError | None = None
    meta: APIMeta


def request_id_of(request: Request | None) -> str:
    """Request id assigned by RequestIDMiddleware, or a fresh one."""
    if request is not None:
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            return request_id
    return str(uuid4())


def _meta(request: Request | None) -> APIMeta:
    return APIMeta(timestamp=now_utc(), request_id=request_id_of(request))


def success_response(data: Any, request: Request | None = None) -> APIResponse:
    """Create a success response."""
    return APIResponse(success=True, data=data, error=None, meta=_meta(request))


def error_response(code: str, message: str, request: Request | None = None) -> APIResponse:
    """Create an error response."""
    return APIResponse(
        success=False,
        data=None,
        error=APIError(code=code, message=message),
        meta=_meta(request),
    )


class ErrorCodes:
    """Machine-readable error codes returned in error.code."""

    # Request
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"

    # Lead state
    NOT_FOUND = "NOT_FOUND"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"

    # External providers
    UPSTREAM_AUTH_FAILED = "UPSTREAM_AUTH_FAILED"
    UPSTREAM_REJECTED = "UPSTREAM_REJECTED"
    INVOICE_REJECTED = "INVOICE_REJECTED"
    UPSTREAM_TIMEOUT = "UPSTREAM_TIMEOUT"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"

    # Infrastructure
    INTERNAL_ERROR = "INTERNAL_ERROR"


# HTTP status per error code
STATUS_BY_CODE = {
    ErrorCodes.VALIDATION_ERROR: 400,
    ErrorCodes.INVALID_REQUEST: 400,
    ErrorCodes.NOT_FOUND: 404,
    ErrorCodes.PRECONDITION_FAILED: 409,
    ErrorCodes.UPSTREAM_AUTH_FAILED: 502,
    ErrorCodes.UPSTREAM_REJECTED: 502,
    ErrorCodes.INVOICE_REJECTED: 422,
    ErrorCodes.UPSTREAM_TIMEOUT: 504,
    ErrorCodes.UPSTREAM_ERROR: 502,
    ErrorCodes.INTERNAL_ERROR: 500,
}
