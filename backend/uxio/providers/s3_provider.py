"""
S3Provider - object store uploads via boto3.

boto3 is synchronous, so client calls run in a worker thread.
"""

import asyncio
import logging
from typing import Any, Dict
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from uxio.exceptions import ProviderConfigInvalidError, ProviderUploadError
from uxio.models import CachedFile
from .storage_provider import ProviderResult, StorageProvider

logger = logging.getLogger(__name__)


class S3Provider(StorageProvider):
    """
    Uploads files as S3 objects keyed by their final name.

    Options:
        bucket: Target bucket
        region: Bucket region
        credentials: {"access_key_id": ..., "secret_access_key": ..., "session_token": ...}
        endpoint_url: Optional S3-compatible endpoint
    """

    @property
    def provider_name(self) -> str:
        return "s3"

    @property
    def supports_rollback(self) -> bool:
        return True

    def validate_options(self, options: Dict[str, Any]) -> None:
        credentials = options.get("credentials") or {}
        missing = [key for key in ("bucket", "region") if not options.get(key)]
        missing += [
            f"credentials.{key}"
            for key in ("access_key_id", "secret_access_key")
            if not credentials.get(key)
        ]
        if missing:
            raise ProviderConfigInvalidError(self.provider_name, missing)

    def _client(self, options: Dict[str, Any]):
        credentials = options["credentials"]
        kwargs: dict = {
            "region_name": options["region"],
            "aws_access_key_id": credentials["access_key_id"],
            "aws_secret_access_key": credentials["secret_access_key"],
        }
        if credentials.get("session_token"):
            kwargs["aws_session_token"] = credentials["session_token"]
        if options.get("endpoint_url"):
            kwargs["endpoint_url"] = options["endpoint_url"]
        return boto3.client("s3", **kwargs)

    @staticmethod
    def object_url(options: Dict[str, Any], key: str) -> str:
        quoted = quote(key)
        if options.get("endpoint_url"):
            return f"{options['endpoint_url'].rstrip('/')}/{options['bucket']}/{quoted}"
        return f"https://{options['bucket']}.s3.{options['region']}.amazonaws.com/{quoted}"

    async def upload(self, file: CachedFile, name: str, options: Dict[str, Any]) -> ProviderResult:
        bucket = options["bucket"]

        def _put() -> dict:
            client = self._client(options)
            with open(file.cache_path, "rb") as body:
                return client.put_object(
                    Bucket=bucket,
                    Key=name,
                    Body=body,
                    ContentType=file.mime_type,
                    ContentLength=file.size_bytes,
                    Metadata={"original-name": quote(file.original_name)},
                )

        try:
            response = await asyncio.to_thread(_put)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"[S3] Upload of '{name}' to bucket {bucket} failed: {e}")
            raise ProviderUploadError(self.provider_name, str(e), {"bucket": bucket, "key": name}) from e

        logger.info(f"[S3] Uploaded '{file.original_name}' as s3://{bucket}/{name}")
        return ProviderResult(
            path=name,
            extra={
                "bucket": bucket,
                "key": name,
                "region": options["region"],
                "url": self.object_url(options, name),
                "etag": (response or {}).get("ETag"),
            },
            rollback_ref={"options": options, "key": name},
        )

    async def rollback(self, ref: Any) -> None:
        options = ref["options"]

        def _delete() -> None:
            self._client(options).delete_object(Bucket=options["bucket"], Key=ref["key"])

        await asyncio.to_thread(_delete)
        logger.info(f"[S3] Rolled back s3://{options['bucket']}/{ref['key']}")
