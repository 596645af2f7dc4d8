"""Pydantic models for API request/response schemas."""

from .upload_response import StoredFile, UploadResponse

__all__ = [
    "StoredFile",
    "UploadResponse",
]
