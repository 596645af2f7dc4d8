"""
ASGI middleware that ingests multipart uploads into a per-request cache.

Matching requests (POST + multipart/form-data) get a UxioContext at
``request.state.uxio``; everything else passes through untouched. The cache
directory is removed when the response finishes, when the client goes away,
or when the downstream app raises, whichever comes first.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

from python_multipart.exceptions import FormParserError
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from .cache import DEFAULT_PREFIX, CacheDirectory
from .context import UxioContext
from .exceptions import NotFoundError, ValidationFailedError
from .ingestion import MultipartEventStream, ingest, receive_body

logger = logging.getLogger(__name__)


def is_multipart_post(scope: Scope) -> bool:
    if scope["type"] != "http" or scope["method"] != "POST":
        return False
    content_type = Headers(scope=scope).get("content-type", "")
    return content_type.lower().startswith("multipart/form-data")


class UxioMiddleware:
    """
    Streams multipart file parts to a temporary cache before the route runs.

    Malformed bodies raise ValidationFailedError, so install an error handler
    outside this middleware to turn it into a 400 response.
    """

    def __init__(
        self,
        app: ASGIApp,
        cache_root: Optional[Union[str, Path]] = None,
        prefix: str = DEFAULT_PREFIX,
    ):
        self.app = app
        self.cache_root = cache_root
        self.prefix = prefix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if not is_multipart_post(scope):
            await self.app(scope, receive, send)
            return

        cache = CacheDirectory(root=self.cache_root, prefix=self.prefix)
        await asyncio.to_thread(cache.create)
        context = UxioContext(cache)

        try:
            disconnected = await self._ingest(scope, receive, context)
            scope.setdefault("state", {})["uxio"] = context

            body_replayed = False

            async def replay_receive() -> Message:
                nonlocal body_replayed
                if disconnected:
                    return {"type": "http.disconnect"}
                if not body_replayed:
                    body_replayed = True
                    return {"type": "http.request", "body": b"", "more_body": False}
                return await receive()

            async def send_and_cleanup(message: Message) -> None:
                await send(message)
                if message["type"] == "http.response.body" and not message.get("more_body", False):
                    await asyncio.to_thread(context.cleanup)

            await self.app(scope, replay_receive, send_and_cleanup)
        finally:
            await asyncio.to_thread(context.cleanup)

    async def _ingest(self, scope: Scope, receive: Receive, context: UxioContext) -> bool:
        """Run ingestion; returns True if the client disconnected mid-body."""
        content_type = Headers(scope=scope)["content-type"]
        try:
            events = MultipartEventStream(content_type, receive_body(receive))
            await ingest(events, context)
        except FormParserError as e:
            logger.warning(f"Malformed multipart body: {e}")
            raise ValidationFailedError(f"Malformed multipart body: {e}") from e
        return not context.body_complete


def get_uxio(request: Request) -> UxioContext:
    """
    FastAPI dependency returning the request's upload context.

    Raises:
        NotFoundError: If the request was not a multipart POST
    """
    context = getattr(request.state, "uxio", None)
    if context is None:
        raise NotFoundError("No multipart upload context on this request")
    return context
