"""
Application configuration using Pydantic Settings.

All environment variables are accessed through this config object.
Never use os.getenv() directly in business logic.
"""

import tempfile
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application Configuration
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:5173"],
        description="CORS allowed origins",
    )
    MAX_UPLOAD_SIZE: int = Field(
        default=10485760,
        description="Maximum file upload size in bytes (10MB)",
    )
    ALLOWED_MIME_TYPES: List[str] = Field(
        default=[],
        description="MIME types accepted by the upload routes (empty = any)",
    )

    # Cache Configuration
    UXIO_CACHE_ROOT: str = Field(
        default=tempfile.gettempdir(),
        description="Parent directory for per-request upload caches",
    )
    UXIO_CACHE_PREFIX: str = Field(
        default=".uxio-cache-",
        description="Name prefix of per-request cache directories",
    )
    STALE_CACHE_TTL_HOURS: int = Field(
        default=24,
        description="Age after which orphaned cache directories are swept",
    )
    CLEANUP_INTERVAL_HOURS: int = Field(
        default=1,
        description="Interval between stale cache sweeps",
    )

    # Storage Configuration
    UPLOAD_DIR: str = Field(
        default="/app/storage/uploads",
        description="Destination directory for saved uploads",
    )

    # S3 Configuration
    S3_BUCKET_NAME: str = Field(default="", description="Bucket used by the send route")
    S3_REGION: str = Field(default="us-east-1", description="Bucket region")
    S3_ACCESS_KEY_ID: str = Field(default="", description="S3 access key id")
    S3_SECRET_ACCESS_KEY: str = Field(default="", description="S3 secret access key")
    S3_ENDPOINT_URL: Optional[str] = Field(
        default=None,
        description="Optional S3-compatible endpoint (MinIO, LocalStack)",
    )

    # HTTP provider Configuration
    HTTP_UPLOAD_TIMEOUT: float = Field(
        default=30.0,
        description="Timeout in seconds for generic HTTP uploads",
    )


# Global settings instance
settings = Settings()
