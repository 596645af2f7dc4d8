"""
Test cases for the application shell: health endpoints, docs and routing
"""

from app.main import app


def test_root_endpoint(client):
    """Root reports the upload service and its version"""
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "service": "Uxio Upload API",
        "version": app.version,
    }


def test_health_check_endpoint(client):
    """Health check carries a timestamp for monitoring"""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == "1.0.0"
    assert data["timestamp"].endswith("+00:00")


def test_openapi_lists_upload_routes(client):
    """Save and send routes are mounted under /api"""
    response = client.get("/openapi.json")
    assert response.status_code == 200
    schema = response.json()
    assert schema["info"]["title"] == "Uxio Upload API"
    assert "post" in schema["paths"]["/api/upload"]
    assert "post" in schema["paths"]["/api/send"]
    assert "UploadResponse" in schema["components"]["schemas"]


def test_health_endpoints_bypass_upload_middleware(client):
    """A multipart GET is not ingested, so no upload context is required"""
    response = client.get("/health", headers={"content-type": "multipart/form-data; boundary=x"})
    assert response.status_code == 200
