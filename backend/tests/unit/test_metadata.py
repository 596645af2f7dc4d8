"""
Unit Tests for Metadata Enrichment

External tools (ffprobe, file) are patched at the subprocess boundary.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from docx import Document
from openpyxl import Workbook
from PIL import Image
from pptx import Presentation
from pypdf import PdfWriter

from uxio.metadata import (
    detect_mime_type,
    extract_metadata,
    find_handler,
    handle_binary,
    handle_document,
    handle_excel,
    handle_media,
    handle_presentation,
    handle_text,
)


@pytest.mark.asyncio
async def test_image_dimensions(tmp_path):
    path = tmp_path / "wide.png"
    Image.new("RGB", (40, 20), color="red").save(path)

    metadata = await extract_metadata(path, "image/png")

    assert metadata == {
        "mime_type": "image/png",
        "width": 40,
        "height": 20,
        "orientation": "landscape",
        "format": "PNG",
    }


@pytest.mark.asyncio
async def test_square_image_is_portrait(tmp_path):
    path = tmp_path / "square.jpg"
    Image.new("RGB", (10, 10)).save(path, format="JPEG")

    metadata = await extract_metadata(path, "image/jpeg")

    assert metadata["orientation"] == "portrait"


@pytest.mark.asyncio
async def test_excel_sheets(tmp_path):
    path = tmp_path / "book.xlsx"
    workbook = Workbook()
    workbook.active.title = "Summary"
    workbook.create_sheet("Raw")
    workbook.save(path)

    metadata = await handle_excel(path)

    assert metadata == {"sheets": 2, "sheet_names": ["Summary", "Raw"]}


@pytest.mark.asyncio
async def test_text_counts(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("first line\nsecond\n")

    metadata = await handle_text(path)

    assert metadata == {"lines": 3, "char_count": 18, "first_line": "first line"}


@pytest.mark.asyncio
async def test_media_stream_info(tmp_path):
    ffprobe_output = {
        "format": {"duration": "12.5", "format_name": "mov,mp4"},
        "streams": [
            {"codec_type": "video", "width": 1280, "height": 720, "codec_name": "h264"},
            {"codec_type": "audio", "codec_name": "aac", "bit_rate": "128000"},
        ],
    }

    with patch("uxio.metadata._run", AsyncMock(return_value=json.dumps(ffprobe_output))) as run:
        metadata = await handle_media(tmp_path / "clip.mp4")

    assert run.call_args.args[0] == "ffprobe"
    assert metadata == {
        "duration": 12.5,
        "container": "mov,mp4",
        "video": {"width": 1280, "height": 720, "codec": "h264"},
        "audio": {"codec": "aac", "bit_rate": 128000},
    }


class TestBinaryFallback:
    """file(1) based description for anything without a dedicated handler."""

    @pytest.mark.asyncio
    async def test_file_output(self, tmp_path):
        with patch("uxio.metadata._run", AsyncMock(return_value="ELF 64-bit LSB executable\n")):
            metadata = await handle_binary(tmp_path / "tool")

        assert metadata == {"platform_info": "ELF 64-bit LSB executable"}

    @pytest.mark.asyncio
    async def test_missing_tool_reports_unknown(self, tmp_path):
        with patch("uxio.metadata._run", AsyncMock(side_effect=FileNotFoundError("file"))):
            metadata = await handle_binary(tmp_path / "tool")

        assert metadata == {"platform_info": "unknown"}

    @pytest.mark.asyncio
    async def test_timeout_reports_unknown(self, tmp_path):
        with patch("uxio.metadata._run", AsyncMock(side_effect=asyncio.TimeoutError())):
            metadata = await handle_binary(tmp_path / "tool")

        assert metadata["platform_info"] == "unknown"


class TestHandlerLookup:
    """MIME type to handler dispatch."""

    def test_exact_match(self):
        assert (
            find_handler("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
            is handle_excel
        )

    @pytest.mark.parametrize("mime_type", ["video/mp4", "audio/mpeg"])
    def test_prefix_match(self, mime_type):
        assert find_handler(mime_type) is handle_media

    def test_no_match(self):
        assert find_handler("application/zip") is None


@pytest.mark.asyncio
async def test_corrupt_file_keeps_mime_type(tmp_path, caplog):
    """A handler failure never propagates."""
    path = tmp_path / "broken.png"
    path.write_bytes(b"not really a png")

    metadata = await extract_metadata(path, "image/png")

    assert metadata == {"mime_type": "image/png"}
    assert "Error extracting metadata" in caplog.text


@pytest.mark.asyncio
async def test_generic_type_is_refined_from_extension(tmp_path):
    path = tmp_path / "readme.txt"
    path.write_text("hello")

    metadata = await extract_metadata(path, "application/octet-stream")

    assert metadata["mime_type"] == "text/plain"
    assert metadata["char_count"] == 5


@pytest.mark.asyncio
async def test_unknown_type_uses_binary_fallback(tmp_path):
    path = tmp_path / "archive.bin"
    path.write_bytes(b"\x00\x01")

    with patch("uxio.metadata._run", AsyncMock(return_value="data\n")):
        metadata = await extract_metadata(path, None)

    assert metadata == {"mime_type": "application/octet-stream", "platform_info": "data"}


class TestOfficeAndPdfHandlers:
    """Document formats handled through their dedicated libraries."""

    @pytest.mark.asyncio
    async def test_pdf_pages_and_info(self, tmp_path):
        path = tmp_path / "report.pdf"
        writer = PdfWriter()
        writer.add_blank_page(width=72, height=72)
        writer.add_blank_page(width=72, height=72)
        writer.add_metadata({"/Title": "Quarterly", "/Author": "Finance"})
        with open(path, "wb") as f:
            writer.write(f)

        metadata = await extract_metadata(path, "application/pdf")

        assert metadata["mime_type"] == "application/pdf"
        assert metadata["pages"] == 2
        assert metadata["info"]["Title"] == "Quarterly"
        assert metadata["info"]["Author"] == "Finance"

    @pytest.mark.asyncio
    async def test_docx_word_and_char_counts(self, tmp_path):
        path = tmp_path / "letter.docx"
        document = Document()
        document.add_paragraph("Dear reader")
        document.add_paragraph("see you soon")
        document.save(str(path))

        metadata = await handle_document(path)

        assert metadata["word_count"] == 5
        assert metadata["char_count"] >= len("Dear reader\nsee you soon")

    @pytest.mark.asyncio
    async def test_pptx_slide_count(self, tmp_path):
        path = tmp_path / "deck.pptx"
        presentation = Presentation()
        for _ in range(3):
            presentation.slides.add_slide(presentation.slide_layouts[6])
        presentation.save(str(path))

        metadata = await extract_metadata(
            path, "application/vnd.openxmlformats-officedocument.presentationml.presentation"
        )

        assert metadata["slides_count"] == 3

    @pytest.mark.asyncio
    async def test_empty_pptx_has_no_slide_count(self, tmp_path):
        path = tmp_path / "empty.pptx"
        Presentation().save(str(path))

        metadata = await handle_presentation(path)

        assert metadata == {"slides_count": None}

    @pytest.mark.asyncio
    async def test_legacy_xls_sheets(self, tmp_path):
        book = MagicMock()
        book.sheet_names.return_value = ["Jan", "Feb"]

        with patch("uxio.metadata.xlrd.open_workbook", return_value=book) as open_workbook:
            metadata = await extract_metadata(tmp_path / "old.xls", "application/vnd.ms-excel")

        assert metadata == {
            "mime_type": "application/vnd.ms-excel",
            "sheets": 2,
            "sheet_names": ["Jan", "Feb"],
        }
        assert open_workbook.call_args.kwargs["on_demand"] is True
        book.release_resources.assert_called_once()


class TestContentSniffing:
    """Generic uploads are identified by their magic bytes."""

    @pytest.mark.asyncio
    async def test_png_without_extension(self, tmp_path):
        path = tmp_path / "avatar-upload"
        Image.new("RGB", (8, 4)).save(path, format="PNG")

        metadata = await extract_metadata(path, "application/octet-stream")

        assert metadata["mime_type"] == "image/png"
        assert metadata["width"] == 8

    @pytest.mark.asyncio
    async def test_content_wins_over_misleading_extension(self, tmp_path):
        path = tmp_path / "scan.txt"
        writer = PdfWriter()
        writer.add_blank_page(width=72, height=72)
        with open(path, "wb") as f:
            writer.write(f)

        assert await detect_mime_type(path) == "application/pdf"

    @pytest.mark.asyncio
    async def test_declared_type_is_trusted(self, tmp_path):
        path = tmp_path / "avatar-upload"
        Image.new("RGB", (8, 4)).save(path, format="PNG")

        with patch("uxio.metadata._run", AsyncMock(return_value="PNG image data\n")):
            metadata = await extract_metadata(path, "application/zip")

        assert metadata["mime_type"] == "application/zip"
