"""
HttpProvider - generic HTTP endpoint uploads via httpx.

There is no delete contract for an arbitrary endpoint, so uploads sent
through this provider are not rolled back when a later step fails.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import quote

import aiofiles
import httpx

from uxio.exceptions import ProviderConfigInvalidError, ProviderUploadError
from uxio.models import CachedFile
from .storage_provider import ProviderResult, StorageProvider

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
CHUNK_SIZE = 64 * 1024


async def _read_chunks(path) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while chunk := await f.read(CHUNK_SIZE):
            yield chunk


class HttpProvider(StorageProvider):
    """
    Streams files to an HTTP endpoint.

    Options:
        url: Target URL (required)
        method: HTTP method (default: POST)
        headers: Extra request headers
        timeout: Seconds (default: 30)
        field_name: If set, send a multipart form with the file under this
                    field instead of a raw body
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "http"

    def validate_options(self, options: Dict[str, Any]) -> None:
        if not options.get("url"):
            raise ProviderConfigInvalidError(self.provider_name, ["url"])

    async def upload(self, file: CachedFile, name: str, options: Dict[str, Any]) -> ProviderResult:
        url = options["url"]
        method = options.get("method", "POST").upper()
        headers = {
            **options.get("headers", {}),
            "X-File-Name": quote(name),
            "X-Original-Name": quote(file.original_name),
        }
        timeout = options.get("timeout", DEFAULT_TIMEOUT)

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                if options.get("field_name"):
                    fh = await asyncio.to_thread(open, file.cache_path, "rb")
                    try:
                        response = await client.request(
                            method,
                            url,
                            headers=headers,
                            files={options["field_name"]: (name, fh, file.mime_type)},
                        )
                    finally:
                        await asyncio.to_thread(fh.close)
                else:
                    headers["Content-Type"] = file.mime_type
                    headers["Content-Length"] = str(file.size_bytes)
                    response = await client.request(
                        method,
                        url,
                        headers=headers,
                        content=_read_chunks(file.cache_path),
                    )
        except httpx.HTTPError as e:
            logger.error(f"[HTTP] Upload of '{name}' to {url} failed: {e}")
            raise ProviderUploadError(self.provider_name, str(e), {"url": url}) from e

        if response.is_error:
            logger.error(f"[HTTP] {url} rejected '{name}' with status {response.status_code}")
            raise ProviderUploadError(
                self.provider_name,
                f"remote responded with status {response.status_code}",
                {"url": url, "status": response.status_code},
            )

        logger.info(f"[HTTP] Uploaded '{file.original_name}' as '{name}' to {url}")
        return ProviderResult(path=url, extra=self._response_body(response))

    @staticmethod
    def _response_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {"response": response.text}
        if isinstance(body, dict):
            return body
        return {"response": body}
