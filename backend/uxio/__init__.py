"""Request-scoped multipart upload pipeline with transactional persistence."""

from .cache import CacheDirectory
from .context import UxioContext
from .exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    ProviderConfigInvalidError,
    ProviderUploadError,
    UnsupportedProviderError,
    UxioError,
    ValidationFailedError,
)
from .files import save, send
from .legacy import from_legacy_save, from_legacy_send
from .middleware import UxioMiddleware, get_uxio
from .models import CachedFile, FileValidation, PersistedFileInfo, SaveConfig, SendConfig

__all__ = [
    "CacheDirectory",
    "UxioContext",
    "UxioMiddleware",
    "get_uxio",
    "save",
    "send",
    "from_legacy_save",
    "from_legacy_send",
    "CachedFile",
    "FileValidation",
    "PersistedFileInfo",
    "SaveConfig",
    "SendConfig",
    "UxioError",
    "NotFoundError",
    "ValidationFailedError",
    "ConflictError",
    "UnsupportedProviderError",
    "ProviderConfigInvalidError",
    "ProviderUploadError",
    "InternalError",
]
