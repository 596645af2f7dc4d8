"""
Provider factory for ``send`` destinations.

Providers are looked up by case-insensitive identifier in a table, so adding
one is a single ``register_provider`` call.
"""

import logging
from typing import Callable, Dict, Iterable

from uxio.exceptions import UnsupportedProviderError
from .http_provider import HttpProvider
from .s3_provider import S3Provider
from .storage_provider import StorageProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], StorageProvider]

PROVIDERS: Dict[str, ProviderFactory] = {}


def register_provider(name: str, factory: ProviderFactory, aliases: Iterable[str] = ()) -> None:
    """Register a provider factory under ``name`` and any aliases."""
    for key in (name, *aliases):
        PROVIDERS[key.lower()] = factory
    logger.debug(f"Registered storage provider '{name}'")


def get_provider(name: str) -> StorageProvider:
    """
    Build the provider registered under ``name``.

    Raises:
        UnsupportedProviderError: If no provider matches
    """
    factory = PROVIDERS.get((name or "").lower())
    if factory is None:
        raise UnsupportedProviderError(name, sorted(PROVIDERS))
    return factory()


register_provider("s3", S3Provider, aliases=("aws", "objectstore"))
register_provider("http", HttpProvider, aliases=("customhttp",))
