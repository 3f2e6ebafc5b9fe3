"""
Error Handling Utilities
Sanitized responses for unhandled exceptions and request-level auth failures.
"""

import logging
from enum import Enum
from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Error codes for frontend handling."""

    NOT_AUTHENTICATED = "not_authenticated"
    FORBIDDEN = "forbidden"
    INTERNAL_ERROR = "internal_error"
    SERVICE_UNAVAILABLE = "service_unavailable"


# Default status and user-facing message per code
ERRORS = {
    ErrorCode.NOT_AUTHENTICATED: (status.HTTP_401_UNAUTHORIZED, "Invalid or expired token."),
    ErrorCode.FORBIDDEN: (status.HTTP_403_FORBIDDEN, "You do not have access to this resource."),
    ErrorCode.INTERNAL_ERROR: (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An error occurred while processing your request.",
    ),
    ErrorCode.SERVICE_UNAVAILABLE: (
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Service temporarily unavailable. Please try again in a moment.",
    ),
}


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler for exceptions no route handled.

    Database errors become 503, everything else 500. The exception is logged
    in full; the response only carries the generic message.
    """
    error_code = (
        ErrorCode.SERVICE_UNAVAILABLE
        if isinstance(exc, SQLAlchemyError)
        else ErrorCode.INTERNAL_ERROR
    )
    http_status, message = ERRORS[error_code]
    logger.error(
        "Unhandled error [%s] on %s %s: %s",
        error_code.value,
        request.method,
        request.url.path,
        exc,
        exc_info=exc,
    )

    return JSONResponse(
        status_code=http_status,
        content={"error_code": error_code.value, "message": message},
    )


def create_error_response(
    error_code: ErrorCode,
    message: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
) -> HTTPException:
    """
    Create a standardized HTTPException with error code.

    Args:
        error_code: Error code enum
        message: Optional custom message (uses default if not provided)
        headers: Optional response headers
    """
    http_status, default_message = ERRORS[error_code]

    return HTTPException(
        status_code=http_status,
        detail={
            "error_code": error_code.value,
            "message": message or default_message,
        },
        headers=headers,
    )
