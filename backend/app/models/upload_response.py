"""
Upload Response Pydantic Models

Defines the response structure for the save and send routes.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class StoredFile(BaseModel):
    """One persisted file as reported to API clients."""

    fieldName: str = Field(..., description="Form field the file was submitted under")
    originalName: str = Field(..., description="Filename supplied by the client")
    name: str = Field(..., description="Final name after renaming")
    path: str = Field(..., description="Saved path, object key or endpoint URL")
    size: int = Field(..., description="File size in bytes")
    mimeType: str = Field(..., description="Declared MIME type")
    provider: Optional[str] = Field(None, description="Remote provider for sent files")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Type-specific metadata")
    extra: Dict[str, Any] = Field(default_factory=dict, description="Provider response fields")


class UploadResponse(BaseModel):
    """
    Response model for successful save/send calls.

    Returned by POST /api/upload and POST /api/send.
    """

    files: List[StoredFile] = Field(..., description="Persisted files in processing order")
    fields: Dict[str, str] = Field(default_factory=dict, description="Non-file form fields")

    model_config = {
        "json_schema_extra": {
            "example": {
                "files": [
                    {
                        "fieldName": "avatar",
                        "originalName": "me.png",
                        "name": "1736000000-me.png",
                        "path": "/app/storage/uploads/1736000000-me.png",
                        "size": 24576,
                        "mimeType": "image/png",
                        "provider": None,
                        "metadata": {"mime_type": "image/png", "width": 128, "height": 128},
                        "extra": {},
                    }
                ],
                "fields": {"prefix": "1736000000-"},
            }
        }
    }
