"""
Integration tests for UxioMiddleware

Runs the middleware inside a small FastAPI app so the full ASGI flow
(ingestion, route, response, cache teardown) is exercised.
"""

import shutil
import threading
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from app.middleware import ErrorHandlerMiddleware, uxio_exception_handler
from uxio import UxioContext, UxioError, UxioMiddleware, get_uxio


@pytest.fixture
def cache_root(tmp_path) -> Path:
    root = tmp_path / "cache-root"
    root.mkdir()
    return root


@pytest.fixture
def echo_app(cache_root) -> FastAPI:
    """App whose routes report what the middleware produced."""
    app = FastAPI()
    app.add_middleware(UxioMiddleware, cache_root=cache_root)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_exception_handler(UxioError, uxio_exception_handler)

    @app.post("/inspect")
    async def inspect(uxio: UxioContext = Depends(get_uxio)):
        return {
            "cache_dir": str(uxio.cache_dir),
            "fields": uxio.fields,
            "files": [
                {
                    "field_name": f.field_name,
                    "original_name": f.original_name,
                    "mime_type": f.mime_type,
                    "size_bytes": f.size_bytes,
                    "complete": f.complete,
                    "content": f.cache_path.read_text(),
                }
                for f in uxio.files
            ],
        }

    @app.post("/explode")
    async def explode(uxio: UxioContext = Depends(get_uxio)):
        raise RuntimeError(f"boom {uxio.cache_dir}")

    @app.post("/json")
    async def echo_json(request: Request):
        return {"body": await request.json(), "has_uxio": hasattr(request.state, "uxio")}

    @app.get("/ping")
    async def ping():
        return {"pong": True}

    return app


@pytest.fixture
def echo_client(echo_app) -> TestClient:
    return TestClient(echo_app)


def test_fields_and_files_are_ingested(echo_client, build_multipart, cache_root):
    body, content_type = build_multipart(
        [
            ("title", None, None, b"Holiday"),
            ("avatar", "me.png", "image/png", b"PNGDATA"),
            ("file", "notes.txt", "text/plain", b"line one\nline two"),
        ]
    )

    response = echo_client.post("/inspect", content=body, headers={"content-type": content_type})

    assert response.status_code == 200
    data = response.json()
    assert data["fields"] == {"title": "Holiday"}
    assert [f["field_name"] for f in data["files"]] == ["avatar", "file"]
    assert data["files"][0] == {
        "field_name": "avatar",
        "original_name": "me.png",
        "mime_type": "image/png",
        "size_bytes": 7,
        "complete": True,
        "content": "PNGDATA",
    }
    assert Path(data["cache_dir"]).parent == cache_root
    assert Path(data["cache_dir"]).name.startswith(".uxio-cache-")


def test_cache_removed_after_response(echo_client, build_multipart, cache_root):
    body, content_type = build_multipart([("avatar", "me.png", "image/png", b"PNGDATA")])

    response = echo_client.post("/inspect", content=body, headers={"content-type": content_type})

    assert response.status_code == 200
    assert not Path(response.json()["cache_dir"]).exists()
    assert list(cache_root.iterdir()) == []


def test_cache_removed_when_route_fails(echo_client, build_multipart, cache_root):
    body, content_type = build_multipart([("avatar", "me.png", "image/png", b"PNGDATA")])

    response = echo_client.post("/explode", content=body, headers={"content-type": content_type})

    assert response.status_code == 500
    assert response.json()["error"] == "internal"
    assert list(cache_root.iterdir()) == []


def test_malformed_body_is_rejected(echo_client, cache_root):
    response = echo_client.post(
        "/inspect",
        content=b"--abc\r\nContent-Type: text/plain\r\n\r\nno disposition\r\n--abc--\r\n",
        headers={"content-type": "multipart/form-data; boundary=abc"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "validation_failed"
    assert "Malformed multipart body" in response.json()["message"]
    assert list(cache_root.iterdir()) == []


def test_missing_boundary_is_rejected(echo_client, cache_root):
    response = echo_client.post(
        "/inspect",
        content=b"whatever",
        headers={"content-type": "multipart/form-data"},
    )

    assert response.status_code == 400
    assert list(cache_root.iterdir()) == []


class TestPassthrough:
    """Non-multipart requests never touch the cache."""

    def test_json_post(self, echo_client, cache_root):
        response = echo_client.post("/json", json={"hello": "world"})

        assert response.status_code == 200
        assert response.json() == {"body": {"hello": "world"}, "has_uxio": False}
        assert list(cache_root.iterdir()) == []

    def test_get_request(self, echo_client):
        assert echo_client.get("/ping").json() == {"pong": True}

    def test_route_requiring_upload_without_one(self, echo_client):
        response = echo_client.post("/inspect", json={})

        assert response.status_code == 404
        assert response.json()["message"] == "No multipart upload context on this request"


def test_unterminated_body_is_rejected(echo_client, build_multipart, cache_root):
    """A body missing its closing boundary is malformed, not an absent file."""
    body, content_type = build_multipart([("avatar", "me.png", "image/png", b"PNGDATA")])
    unterminated = body[: body.rindex(b"--uxioTestBoundary--")]

    response = echo_client.post("/inspect", content=unterminated, headers={"content-type": content_type})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_failed"
    assert "closing boundary" in response.json()["message"]
    assert list(cache_root.iterdir()) == []


def test_teardown_runs_off_the_event_loop(echo_app, build_multipart, cache_root):
    loop_threads = []
    teardown_threads = []

    @echo_app.post("/loop-thread")
    async def loop_thread(uxio: UxioContext = Depends(get_uxio)):
        loop_threads.append(threading.get_ident())
        return {}

    real_rmtree = shutil.rmtree

    def recording_rmtree(path, *args, **kwargs):
        teardown_threads.append(threading.get_ident())
        return real_rmtree(path, *args, **kwargs)

    body, content_type = build_multipart([("avatar", "me.png", "image/png", b"PNGDATA")])

    with patch("uxio.cache.shutil.rmtree", side_effect=recording_rmtree):
        response = TestClient(echo_app).post(
            "/loop-thread", content=body, headers={"content-type": content_type}
        )

    assert response.status_code == 200
    assert teardown_threads
    assert loop_threads[0] not in teardown_threads
    assert list(cache_root.iterdir()) == []
