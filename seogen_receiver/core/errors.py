"""
SEOgen Receiver - Error Handling

Structured error responses for API consistency. Every rejection carries a
machine-readable code:

    {"error": "import_in_progress", "message": "...", "status_code": 409,
     "request_id": "a1b2c3d4"}
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from .middleware import get_request_id

logger = logging.getLogger(__name__)


# =============================================================================
# Error Response Model
# =============================================================================


class ErrorResponse(BaseModel):
    """Standardized error response format."""

    error: str  # Machine-readable error code
    message: str  # Human-readable error message
    status_code: int
    request_id: str | None = None


# =============================================================================
# Error Codes
# =============================================================================

# Generic client errors (4xx)
ERROR_VALIDATION = "validation_error"
ERROR_NOT_FOUND = "not_found"
ERROR_UNAUTHORIZED = "unauthorized"
ERROR_FORBIDDEN = "forbidden"
ERROR_BAD_REQUEST = "bad_request"
ERROR_CONFLICT = "conflict"
ERROR_INVALID_JSON = "invalid_json"

# Server errors (5xx)
ERROR_INTERNAL = "internal_error"
ERROR_SERVICE_UNAVAILABLE = "service_unavailable"


# =============================================================================
# Exceptions
# =============================================================================


class ReceiverError(Exception):
    """Base exception for receiver business errors rendered as envelopes."""

    def __init__(
        self,
        message: str,
        error_code: str = ERROR_INTERNAL,
        status_code: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code


class CallbackError(ReceiverError):
    """Rejected callback (signature, license, payload or import failure)."""


# =============================================================================
# Exception Handlers
# =============================================================================


def create_error_response(
    status_code: int,
    error: str,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    request_id = get_request_id()

    response = ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        request_id=request_id if request_id else None,
    )

    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(exclude_none=True),
        headers=headers,
    )


async def receiver_error_handler(request: Request, exc: ReceiverError) -> JSONResponse:
    """Render business errors raised by routers and dependencies."""
    if exc.status_code >= 500:
        logger.error(
            f"{exc.error_code}: {exc.message}",
            extra={"path": request.url.path, "error_code": exc.error_code},
        )
    else:
        logger.warning(
            f"Rejected {request.url.path}: {exc.error_code}",
            extra={"path": request.url.path, "error_code": exc.error_code},
        )

    return create_error_response(exc.status_code, exc.error_code, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Map standard HTTP errors to the receiver error format."""
    error_map = {
        400: ERROR_BAD_REQUEST,
        401: ERROR_UNAUTHORIZED,
        403: ERROR_FORBIDDEN,
        404: ERROR_NOT_FOUND,
        409: ERROR_CONFLICT,
        500: ERROR_INTERNAL,
        503: ERROR_SERVICE_UNAVAILABLE,
    }
    error_code = error_map.get(exc.status_code, ERROR_INTERNAL)

    if isinstance(exc.detail, dict):
        message = exc.detail.get("message", str(exc.detail))
    else:
        message = str(exc.detail)

    return create_error_response(
        exc.status_code, error_code, message, headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors on query/path parameters."""
    fields = [".".join(str(x) for x in error.get("loc", [])) for error in exc.errors()]
    logger.warning(
        f"Validation error on {request.url.path}: {', '.join(fields)}",
        extra={"path": request.url.path, "count": len(fields)},
    )
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ERROR_VALIDATION,
        f"Request validation failed: {', '.join(fields)}",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for unhandled exceptions.

    Logs the full traceback but returns a generic error to the client.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ERROR_INTERNAL,
        "An unexpected error occurred. Please try again later.",
    )


def setup_error_handlers(app: FastAPI) -> None:
    """Register all error handlers with the FastAPI app."""
    app.add_exception_handler(ReceiverError, receiver_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
