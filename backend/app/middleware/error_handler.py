"""
Centralized error handling middleware for FastAPI.

Provides consistent error responses and logging for all API routes.
"""

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from uxio.exceptions import UxioError

logger = logging.getLogger(__name__)


def uxio_error_response(error: UxioError) -> JSONResponse:
    """Translate an upload pipeline error into a JSON response."""
    logger.error(
        f"UxioError ({error.kind}): {error.message}",
        extra={"status_code": error.status_code, "details": error.details},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def uxio_exception_handler(request: Request, exc: UxioError) -> JSONResponse:
    """FastAPI exception handler for errors raised inside route functions."""
    return uxio_error_response(exc)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware that catches unhandled exceptions and returns consistent error responses.

    Must sit outside UxioMiddleware so malformed multipart bodies become 400s.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response

        except UxioError as e:
            return uxio_error_response(e)

        except Exception as e:
            # Log full stack trace for unexpected errors
            logger.exception(f"Unhandled exception: {str(e)}")
            return JSONResponse(
                status_code=500,
                content=format_error_response(
                    status_code=500,
                    message="Internal server error",
                    details=str(e) if logger.isEnabledFor(logging.DEBUG) else None,
                ),
            )


def format_error_response(
    status_code: int,
    message: str,
    details: Any = None,
) -> dict:
    """
    Format a consistent error response.

    Args:
        status_code: HTTP status code
        message: Human-readable error message
        details: Additional error details (optional)

    Returns:
        dict: Formatted error response
    """
    return {
        "error": "internal",
        "message": message,
        "status_code": status_code,
        "details": details,
    }
