"""
StorageProvider abstraction for remote upload destinations.

Defines the interface that ``send`` drives, so new destinations can be added
by registering another implementation in the provider factory.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from uxio.models import CachedFile


class ProviderResult(BaseModel):
    """Outcome of one successful upload."""

    path: str = Field(..., description="Remote location (object key or URL)")
    extra: Dict[str, Any] = Field(default_factory=dict, description="Provider-specific fields")
    rollback_ref: Optional[Any] = Field(
        None,
        description="Opaque reference handed back to rollback()",
    )


class StorageProvider(ABC):
    """
    Abstract base class for remote storage providers.

    Implementations:
    - S3Provider: object store upload with delete-by-key rollback
    - HttpProvider: generic HTTP endpoint, no rollback
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Identifier reported in PersistedFileInfo.provider."""
        pass

    @property
    def supports_rollback(self) -> bool:
        return False

    @abstractmethod
    def validate_options(self, options: Dict[str, Any]) -> None:
        """
        Check provider options before any file is uploaded.

        Raises:
            ProviderConfigInvalidError: If required options are missing
        """
        pass

    @abstractmethod
    async def upload(self, file: CachedFile, name: str, options: Dict[str, Any]) -> ProviderResult:
        """
        Upload one cached file under its final name.

        Args:
            file: Cached upload to read from
            name: Final name (after rename)
            options: Provider options from the SendConfig

        Returns:
            ProviderResult: Location, provider-specific fields and rollback reference

        Raises:
            ProviderUploadError: If the remote rejects the upload
        """
        pass

    async def rollback(self, ref: Any) -> None:
        """Undo a previous upload. Only called when supports_rollback is True."""
        raise NotImplementedError(f"Provider '{self.provider_name}' does not support rollback")
