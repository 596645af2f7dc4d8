"""Error taxonomy for the upload pipeline.

Every failure surfaced by ``save``/``send`` carries a machine-readable kind
and an HTTP status code so route handlers can translate it directly.
"""

from typing import Any


class UxioError(Exception):
    """Base exception for upload pipeline errors."""

    kind = "internal"

    def __init__(self, message: str, status_code: int = 500, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.kind,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }


class NotFoundError(UxioError):
    """Raised when a required selection or destination directory is missing."""

    kind = "not_found"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message=message, status_code=404, details=details)


class ValidationFailedError(UxioError):
    """Raised when a file violates its size or MIME type policy."""

    kind = "validation_failed"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message=message, status_code=400, details=details)


class ConflictError(UxioError):
    """Raised when the destination name is already taken."""

    kind = "conflict"

    def __init__(self, name: str, destination: str):
        super().__init__(
            message=f"File with name '{name}' already exists.",
            status_code=409,
            details={"name": name, "destination": destination},
        )


class UnsupportedProviderError(UxioError):
    """Raised when no provider is registered under the requested identifier."""

    kind = "unsupported_provider"

    def __init__(self, provider: str, available: list[str]):
        super().__init__(
            message=f"Unsupported provider '{provider}'. Available: {', '.join(available)}",
            status_code=400,
            details={"provider": provider, "available": available},
        )


class ProviderConfigInvalidError(UxioError):
    """Raised when provider options are missing required keys."""

    kind = "provider_config_invalid"

    def __init__(self, provider: str, missing: list[str]):
        super().__init__(
            message=f"Invalid options for provider '{provider}': missing {', '.join(missing)}",
            status_code=400,
            details={"provider": provider, "missing": missing},
        )


class InternalError(UxioError):
    """Wraps any unexpected failure raised during a persistence call."""

    kind = "internal"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message=message, status_code=500, details=details)

    @classmethod
    def wrap(cls, exc: BaseException) -> "InternalError":
        error = cls(str(exc) or exc.__class__.__name__, details={"type": exc.__class__.__name__})
        error.__cause__ = exc
        return error


class ProviderUploadError(InternalError):
    """Raised when a remote provider rejects an upload or cannot be reached."""

    def __init__(self, provider: str, reason: str, details: Any = None):
        super().__init__(
            message=f"Upload to provider '{provider}' failed: {reason}",
            details={"provider": provider, "reason": reason, **(details or {})},
        )
