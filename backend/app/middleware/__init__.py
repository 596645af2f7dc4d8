"""FastAPI middleware for request/response processing."""

from .error_handler import (
    ErrorHandlerMiddleware,
    format_error_response,
    uxio_error_response,
    uxio_exception_handler,
)

__all__ = [
    "ErrorHandlerMiddleware",
    "format_error_response",
    "uxio_error_response",
    "uxio_exception_handler",
]
