"""Remote storage providers for ``send``."""

from .storage_provider import ProviderResult, StorageProvider
from .s3_provider import S3Provider
from .http_provider import HttpProvider
from .provider_factory import PROVIDERS, get_provider, register_provider

__all__ = [
    "ProviderResult",
    "StorageProvider",
    "S3Provider",
    "HttpProvider",
    "PROVIDERS",
    "get_provider",
    "register_provider",
]
