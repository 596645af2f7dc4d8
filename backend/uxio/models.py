"""
Pydantic models for cached uploads, persistence configs, and results.
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


class CachedFile(BaseModel):
    """
    One uploaded file part, written to the request's cache directory.

    Created by the ingestion stage with ``size_bytes=0`` and grown as chunks
    arrive. ``complete`` flips to True once the part's end marker is seen;
    records left incomplete by a client disconnect are never persisted.
    """

    field_name: str = Field(..., description="Form field the part was submitted under")
    original_name: str = Field(..., description="Client-supplied filename (untrusted)")
    encoding: str = Field(default="7bit", description="Transfer encoding reported by the client")
    mime_type: str = Field(
        default="application/octet-stream",
        description="Declared MIME type (untrusted)",
    )
    cache_path: Path = Field(..., description="Temporary on-disk copy inside the cache directory")
    size_bytes: int = Field(default=0, ge=0, description="Bytes received so far")
    complete: bool = Field(default=False, description="True once the part stream ended normally")


class FileValidation(BaseModel):
    """Size and MIME type policy applied to every matched file."""

    max_size_bytes: Optional[int] = Field(None, ge=0)
    allowed_mime_types: Optional[List[str]] = None

    @field_validator("allowed_mime_types", mode="before")
    @classmethod
    def split_mime_types(cls, value):
        if isinstance(value, str):
            return [m.strip() for m in value.split(",") if m.strip()]
        return value


class _BaseConfig(BaseModel):
    field_name: Union[str, List[str]] = Field(
        ...,
        description="Field name(s) selecting which cached files to act on",
    )
    required: bool = False
    validation: Optional[FileValidation] = None
    rename: Optional[Callable[[CachedFile], str]] = None

    @property
    def field_names(self) -> List[str]:
        if isinstance(self.field_name, str):
            return [self.field_name]
        return list(self.field_name)


class SaveConfig(_BaseConfig):
    """Instruction to move matched files into a local directory."""

    destination: Path = Field(..., description="Target directory")
    create_destination: bool = Field(
        default=False,
        description="Create the destination recursively if it does not exist",
    )


class SendConfig(_BaseConfig):
    """Instruction to upload matched files to a remote provider."""

    provider: str = Field(..., description="Provider identifier (case-insensitive)")
    options: Dict[str, Any] = Field(default_factory=dict)


class PersistedFileInfo(BaseModel):
    """
    Result record for one successfully persisted file.

    ``path`` is the final filesystem path for ``save`` and the remote
    location (object key or URL) for ``send``.
    """

    field_name: str
    original_name: str
    name: str
    path: str
    size_bytes: int
    mime_type: str
    encoding: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    provider: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}
