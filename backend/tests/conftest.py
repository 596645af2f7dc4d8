"""
Pytest configuration and fixtures
"""

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.main import app
from uxio import CachedFile, CacheDirectory, UxioContext


@pytest.fixture
def client():
    """FastAPI test client fixture"""
    return TestClient(app)


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Point the upload routes at a temporary directory."""
    target = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(target))
    return target


@pytest.fixture
def uxio_context(tmp_path):
    """UxioContext backed by a real cache directory."""
    cache = CacheDirectory(root=tmp_path / "cache")
    cache.create()
    context = UxioContext(cache)
    context.body_complete = True
    yield context
    context.cleanup()


@pytest.fixture
def add_cached_file():
    """Factory that writes a cached part into a context like ingestion would."""

    def _add(
        context: UxioContext,
        field_name: str,
        original_name: str,
        content: bytes = b"This is a test file.",
        mime_type: str = "text/plain",
        complete: bool = True,
    ) -> CachedFile:
        index = sum(
            1 for f in context.files
            if f.field_name == field_name and f.original_name == original_name
        )
        path = context.cache.file_path(field_name, original_name, index=index)
        path.write_bytes(content)
        return context.add_file(
            CachedFile(
                field_name=field_name,
                original_name=original_name,
                mime_type=mime_type,
                cache_path=path,
                size_bytes=len(content),
                complete=complete,
            )
        )

    return _add


def _build_multipart(parts, boundary: str = "uxioTestBoundary") -> tuple[bytes, str]:
    """
    Encode multipart/form-data parts.

    Each part is (name, filename_or_None, content_type_or_None, data).

    Returns:
        tuple: (body bytes, content type header)
    """
    chunks = []
    for name, filename, content_type, data in parts:
        disposition = f'form-data; name="{name}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        headers = f"Content-Disposition: {disposition}\r\n"
        if content_type:
            headers += f"Content-Type: {content_type}\r\n"
        chunks.append(f"--{boundary}\r\n{headers}\r\n".encode() + data + b"\r\n")
    chunks.append(f"--{boundary}--\r\n".encode())
    return b"".join(chunks), f"multipart/form-data; boundary={boundary}"


@pytest.fixture
def build_multipart():
    """Multipart body encoder: build_multipart(parts) -> (body, content_type)."""
    return _build_multipart
