"""
Metadata Enrichment

Best-effort, type-specific descriptive data for persisted files. Every
handler may fail; ``extract_metadata`` never does.
"""

import asyncio
import json
import logging
import mimetypes
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import aiofiles
import filetype
import xlrd
from docx import Document
from openpyxl import load_workbook
from PIL import Image
from pptx import Presentation
from pypdf import PdfReader

logger = logging.getLogger(__name__)

GENERIC_MIME_TYPE = "application/octet-stream"

# Seconds allowed for ffprobe / file(1) subprocesses
SUBPROCESS_TIMEOUT = 10


async def _run(*args: str) -> str:
    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=SUBPROCESS_TIMEOUT)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise
    if process.returncode != 0:
        raise RuntimeError(f"{args[0]} exited with {process.returncode}: {stderr.decode(errors='replace')}")
    return stdout.decode(errors="replace")


def _image_info(path: Path) -> Dict[str, Any]:
    with Image.open(path) as img:
        width, height = img.size
        return {
            "width": width,
            "height": height,
            "orientation": "landscape" if width > height else "portrait",
            "format": img.format,
        }


async def handle_image(path: Path) -> Dict[str, Any]:
    return await asyncio.to_thread(_image_info, path)


async def handle_media(path: Path) -> Dict[str, Any]:
    stdout = await _run(
        "ffprobe", "-v", "error", "-show_format", "-show_streams", "-of", "json", str(path)
    )
    info = json.loads(stdout)
    fmt = info.get("format", {})
    streams = info.get("streams", [])
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)

    metadata: Dict[str, Any] = {
        "duration": float(fmt["duration"]) if fmt.get("duration") else None,
        "container": fmt.get("format_name"),
    }
    if video:
        metadata["video"] = {
            "width": video.get("width"),
            "height": video.get("height"),
            "codec": video.get("codec_name"),
        }
    if audio:
        metadata["audio"] = {
            "codec": audio.get("codec_name"),
            "bit_rate": int(audio["bit_rate"]) if audio.get("bit_rate") else None,
        }
    return metadata


def _workbook_info(path: Path) -> Dict[str, Any]:
    workbook = load_workbook(path, read_only=True)
    try:
        return {"sheets": len(workbook.sheetnames), "sheet_names": list(workbook.sheetnames)}
    finally:
        workbook.close()


async def handle_excel(path: Path) -> Dict[str, Any]:
    return await asyncio.to_thread(_workbook_info, path)


def _legacy_workbook_info(path: Path) -> Dict[str, Any]:
    workbook = xlrd.open_workbook(str(path), on_demand=True)
    try:
        sheet_names = list(workbook.sheet_names())
        return {"sheets": len(sheet_names), "sheet_names": sheet_names}
    finally:
        workbook.release_resources()


async def handle_legacy_excel(path: Path) -> Dict[str, Any]:
    return await asyncio.to_thread(_legacy_workbook_info, path)


def _pdf_info(path: Path) -> Dict[str, Any]:
    reader = PdfReader(path)
    info = {key.lstrip("/"): str(value) for key, value in (reader.metadata or {}).items()}
    return {"pages": len(reader.pages), "info": info}


async def handle_pdf(path: Path) -> Dict[str, Any]:
    return await asyncio.to_thread(_pdf_info, path)


def _presentation_info(path: Path) -> Dict[str, Any]:
    slides = len(Presentation(str(path)).slides)
    return {"slides_count": slides or None}


async def handle_presentation(path: Path) -> Dict[str, Any]:
    return await asyncio.to_thread(_presentation_info, path)


def _document_info(path: Path) -> Dict[str, Any]:
    text = "\n".join(paragraph.text for paragraph in Document(str(path)).paragraphs)
    return {"word_count": len(text.split()), "char_count": len(text)}


async def handle_document(path: Path) -> Dict[str, Any]:
    return await asyncio.to_thread(_document_info, path)


async def handle_text(path: Path) -> Dict[str, Any]:
    async with aiofiles.open(path, "r", encoding="utf-8", errors="replace") as f:
        text = await f.read()
    lines = text.split("\n")
    return {
        "lines": len(lines),
        "char_count": len(text),
        "first_line": lines[0][:100],
    }


async def handle_binary(path: Path) -> Dict[str, Any]:
    try:
        stdout = await _run("file", "-b", str(path))
        return {"platform_info": stdout.strip()}
    except (OSError, RuntimeError, asyncio.TimeoutError) as e:
        logger.warning(f"'file' command failed for {path}: {e}")
        return {"platform_info": "unknown"}


Handler = Callable[[Path], Awaitable[Dict[str, Any]]]

# Matched by exact type first, then by prefix, in insertion order
HANDLERS: Dict[str, Handler] = {
    "image/": handle_image,
    "video/": handle_media,
    "audio/": handle_media,
    "application/pdf": handle_pdf,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": handle_excel,
    "application/vnd.ms-excel": handle_legacy_excel,
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": handle_presentation,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": handle_document,
    "text/": handle_text,
}


def _sniff(path: Path) -> Optional[str]:
    kind = filetype.guess(str(path))
    return kind.mime if kind else None


async def detect_mime_type(path: Path) -> Optional[str]:
    """Identify a file from its magic bytes, falling back to its extension."""
    try:
        sniffed = await asyncio.to_thread(_sniff, path)
    except OSError as e:
        logger.warning(f"Could not sniff file type of '{path}': {e}")
        sniffed = None
    if sniffed:
        return sniffed
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed


def find_handler(mime_type: str) -> Optional[Handler]:
    if mime_type in HANDLERS:
        return HANDLERS[mime_type]
    for key, handler in HANDLERS.items():
        if key.endswith("/") and mime_type.startswith(key):
            return handler
    return None


async def extract_metadata(path, declared_mime_type: Optional[str]) -> Dict[str, Any]:
    """
    Extract descriptive metadata for a file.

    Args:
        path: File to inspect
        declared_mime_type: Client-declared MIME type (may be empty). A generic
                            type is replaced by the sniffed content type

    Returns:
        dict: Always contains ``mime_type``; handler output is merged in when
              extraction succeeds
    """
    path = Path(path)
    mime_type = declared_mime_type or GENERIC_MIME_TYPE
    if mime_type == GENERIC_MIME_TYPE:
        mime_type = await detect_mime_type(path) or GENERIC_MIME_TYPE

    metadata: Dict[str, Any] = {"mime_type": mime_type}

    try:
        handler = find_handler(mime_type) or handle_binary
        metadata.update(await handler(path))
    except Exception as e:
        logger.warning(f"Error extracting metadata for file '{path}': {e}")

    return metadata
