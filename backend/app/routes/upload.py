"""
Upload API Routes

Persist files ingested by UxioMiddleware: locally via ``save`` or to a
remote provider via ``send``.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends

from app.config import settings
from app.models.upload_response import StoredFile, UploadResponse
from uxio import (
    FileValidation,
    NotFoundError,
    PersistedFileInfo,
    SaveConfig,
    SendConfig,
    UxioContext,
    get_uxio,
    save,
    send,
)

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_FIELDS = ["avatar", "file"]

HTTP_PROVIDERS = {"http", "customhttp"}


def _validation() -> FileValidation:
    return FileValidation(
        max_size_bytes=settings.MAX_UPLOAD_SIZE,
        allowed_mime_types=settings.ALLOWED_MIME_TYPES or None,
    )


def _to_response(files: List[PersistedFileInfo], uxio: UxioContext) -> UploadResponse:
    return UploadResponse(
        files=[
            StoredFile(
                fieldName=f.field_name,
                originalName=f.original_name,
                name=f.name,
                path=f.path,
                size=f.size_bytes,
                mimeType=f.mime_type,
                provider=f.provider,
                metadata=f.metadata,
                extra=f.extra,
            )
            for f in files
        ],
        fields=uxio.fields,
    )


def _require_upload(uxio: UxioContext) -> None:
    if not uxio.has_files(UPLOAD_FIELDS):
        raise NotFoundError(
            f"No file provided. Upload under one of: {', '.join(UPLOAD_FIELDS)}.",
            details={"fields": UPLOAD_FIELDS},
        )


@router.post(
    "/upload",
    response_model=UploadResponse,
    summary="Save Uploaded Files",
    description="""
Save `avatar` and `file` uploads to the configured upload directory.

An optional `prefix` form field is prepended to every saved filename.
The call is all-or-nothing: if any file fails validation or collides with
an existing name, files already saved by this request are removed.
""",
    responses={
        200: {"description": "Files saved"},
        400: {"description": "Validation failed or malformed multipart body"},
        404: {"description": "No file uploaded"},
        409: {"description": "A file with the same name already exists"},
        500: {"description": "Server error"},
    },
)
async def upload_files(uxio: UxioContext = Depends(get_uxio)) -> UploadResponse:
    _require_upload(uxio)

    prefix = uxio.fields.get("prefix", "")
    configs = [
        SaveConfig(
            field_name=field,
            destination=settings.UPLOAD_DIR,
            create_destination=True,
            validation=_validation(),
            rename=lambda f: f"{prefix}{f.original_name}",
        )
        for field in UPLOAD_FIELDS
    ]

    saved = await save(configs, uxio)
    logger.info(f"Saved {len(saved)} file(s) to {settings.UPLOAD_DIR}")
    return _to_response(saved, uxio)


def _provider_options(provider: str, uxio: UxioContext) -> dict:
    if provider.lower() in HTTP_PROVIDERS:
        return {"url": uxio.fields.get("url"), "timeout": settings.HTTP_UPLOAD_TIMEOUT}
    return {
        "bucket": settings.S3_BUCKET_NAME,
        "region": settings.S3_REGION,
        "endpoint_url": settings.S3_ENDPOINT_URL,
        "credentials": {
            "access_key_id": settings.S3_ACCESS_KEY_ID,
            "secret_access_key": settings.S3_SECRET_ACCESS_KEY,
        },
    }


@router.post(
    "/send",
    response_model=UploadResponse,
    summary="Send Uploaded Files",
    description="""
Upload `avatar` and `file` to a remote provider.

**Form fields:**
- `provider`: `s3` (default) or `http`
- `url`: target endpoint when `provider=http`
- `prefix`: optional key prefix, e.g. `avatars/`

S3 uploads already completed by this request are deleted if a later upload fails.
""",
    responses={
        200: {"description": "Files sent"},
        400: {"description": "Validation failed, unknown provider or incomplete provider options"},
        404: {"description": "No file uploaded"},
        500: {"description": "Remote provider rejected the upload or an unexpected error occurred"},
    },
)
async def send_files(uxio: UxioContext = Depends(get_uxio)) -> UploadResponse:
    _require_upload(uxio)

    provider = uxio.fields.get("provider", "s3")
    prefix = uxio.fields.get("prefix", "")
    options = _provider_options(provider, uxio)
    configs = [
        SendConfig(
            field_name=field,
            provider=provider,
            options=options,
            validation=_validation(),
            rename=lambda f: f"{prefix}{f.original_name}",
        )
        for field in UPLOAD_FIELDS
    ]

    sent = await send(configs, uxio)
    logger.info(f"Sent {len(sent)} file(s) via provider '{provider}'")
    return _to_response(sent, uxio)
