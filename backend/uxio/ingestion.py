"""
Ingestion Stage

Turns a streamed multipart/form-data body into form fields and cached files.

The raw body is fed through python-multipart; its callbacks are collected into
a finite sequence of ingestion events which a single coroutine (``ingest``)
consumes, writing file bytes straight to the request's cache directory.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, List, Optional

import aiofiles
from python_multipart import MultipartParser
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import parse_options_header
from starlette.requests import ClientDisconnect

from .context import UxioContext
from .models import CachedFile

logger = logging.getLogger(__name__)


@dataclass
class FieldEvent:
    name: str
    value: str


@dataclass
class FileStartEvent:
    field_name: str
    filename: str
    encoding: str
    mime_type: str


@dataclass
class FileDataEvent:
    data: bytes


@dataclass
class FileEndEvent:
    pass


@dataclass
class EndOfStream:
    complete: bool = True


async def receive_body(receive: Callable[[], Awaitable[dict]]) -> AsyncIterator[bytes]:
    """
    Yield request body chunks from an ASGI receive channel.

    Raises:
        ClientDisconnect: If the client goes away before the body ends
    """
    while True:
        message = await receive()
        if message["type"] == "http.request":
            body = message.get("body", b"")
            if body:
                yield body
            if not message.get("more_body", False):
                return
        elif message["type"] == "http.disconnect":
            raise ClientDisconnect()


def get_boundary(content_type: str) -> bytes:
    _, options = parse_options_header(content_type)
    boundary = options.get(b"boundary")
    if not boundary:
        raise MultipartParseError("Missing boundary in multipart Content-Type")
    return boundary


def _media_type(content_type: Optional[str]) -> str:
    """Reduce a part Content-Type to its lower-case type/subtype."""
    media_type, _ = parse_options_header(content_type)
    return media_type.decode("latin-1").strip().lower() or "application/octet-stream"


class MultipartEventStream:
    """
    Async iterator of ingestion events for one multipart body.

    Always ends with an ``EndOfStream`` event; ``complete`` is False when the
    client disconnected before the closing boundary arrived. A body that ends
    normally but without its closing boundary raises MultipartParseError.
    """

    def __init__(self, content_type: str, chunks: AsyncIterator[bytes]):
        self.boundary = get_boundary(content_type)
        self.chunks = chunks
        self._pending: List[object] = []
        self._headers: dict = {}
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._field_name: Optional[str] = None
        self._is_file = False
        self._field_data = bytearray()
        self._finished = False

    def _on_part_begin(self) -> None:
        self._headers = {}
        self._field_name = None
        self._is_file = False
        self._field_data = bytearray()

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field.extend(data[start:end])

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value.extend(data[start:end])

    def _on_header_end(self) -> None:
        name = self._header_field.decode("latin-1").lower()
        self._headers[name] = self._header_value.decode("utf-8", errors="replace")
        self._header_field = bytearray()
        self._header_value = bytearray()

    def _on_headers_finished(self) -> None:
        disposition = self._headers.get("content-disposition")
        if not disposition:
            raise MultipartParseError("Missing Content-Disposition header in part")

        _, options = parse_options_header(disposition)
        name = options.get(b"name")
        if name is None:
            raise MultipartParseError("Missing field name in Content-Disposition header")
        self._field_name = name.decode("utf-8", errors="replace")

        filename = options.get(b"filename")
        if filename is None:
            return

        self._is_file = True
        self._pending.append(
            FileStartEvent(
                field_name=self._field_name,
                filename=filename.decode("utf-8", errors="replace"),
                encoding=self._headers.get("content-transfer-encoding", "7bit").strip().lower(),
                mime_type=_media_type(self._headers.get("content-type")),
            )
        )

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self._is_file:
            self._pending.append(FileDataEvent(bytes(data[start:end])))
        else:
            self._field_data.extend(data[start:end])

    def _on_part_end(self) -> None:
        if self._is_file:
            self._pending.append(FileEndEvent())
        elif self._field_name is not None:
            value = self._field_data.decode("utf-8", errors="replace")
            self._pending.append(FieldEvent(self._field_name, value))

    def _on_end(self) -> None:
        self._finished = True

    def _drain(self) -> List[object]:
        events, self._pending = self._pending, []
        return events

    async def __aiter__(self):
        parser = MultipartParser(
            self.boundary,
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_end": self._on_end,
            },
        )

        try:
            async for chunk in self.chunks:
                parser.write(chunk)
                for event in self._drain():
                    yield event
        except ClientDisconnect:
            for event in self._drain():
                yield event
            yield EndOfStream(complete=False)
            return

        parser.finalize()
        if not self._finished:
            raise MultipartParseError("Multipart body ended before the closing boundary")
        for event in self._drain():
            yield event
        yield EndOfStream(complete=True)


async def ingest(events: AsyncIterator[object], context: UxioContext) -> UxioContext:
    """
    Consume ingestion events, populating ``context``.

    File parts are streamed to disk as they arrive; field values are merged
    into ``context.fields`` (last write wins).

    Args:
        events: Ingestion events, terminated by ``EndOfStream``
        context: Registry to append cached files to

    Returns:
        UxioContext: The populated context
    """
    current: Optional[CachedFile] = None
    handle = None

    try:
        async for event in events:
            if isinstance(event, FileStartEvent):
                cache_path = _allocate_cache_path(context, event.field_name, event.filename)
                handle = await aiofiles.open(cache_path, "wb")
                current = context.add_file(
                    CachedFile(
                        field_name=event.field_name,
                        original_name=event.filename,
                        encoding=event.encoding,
                        mime_type=event.mime_type,
                        cache_path=cache_path,
                    )
                )

            elif isinstance(event, FileDataEvent):
                current.size_bytes += len(event.data)
                await handle.write(event.data)

            elif isinstance(event, FileEndEvent):
                await handle.close()
                handle = None
                current.complete = True
                logger.info(
                    f"Cached upload '{current.original_name}' for field "
                    f"'{current.field_name}' ({current.size_bytes} bytes)"
                )
                current = None

            elif isinstance(event, FieldEvent):
                context.set_field(event.name, event.value)

            elif isinstance(event, EndOfStream):
                context.body_complete = event.complete
                if not event.complete:
                    logger.warning("Client disconnected before multipart body completed")
                if current is not None:
                    logger.warning(
                        f"Upload '{current.original_name}' for field '{current.field_name}' "
                        f"truncated at {current.size_bytes} bytes"
                    )
                break
    finally:
        if handle is not None:
            await handle.close()

    return context


def _allocate_cache_path(context: UxioContext, field_name: str, filename: str):
    path = context.cache.file_path(field_name, filename)
    taken = {f.cache_path for f in context.files}
    index = 1
    while path in taken:
        path = context.cache.file_path(field_name, filename, index=index)
        index += 1
    return path
