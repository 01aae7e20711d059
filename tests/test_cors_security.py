"""Tests for CORS configuration on the public API."""

import pytest
from fastapi.testclient import TestClient

from main import app


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


class TestCORSConfiguration:
    """Test CORS configuration adheres to security requirements."""

    def test_cors_preflight_for_stream_endpoint(self, client):
        """Browsers preflight the EventSource request from the dev frontend."""
        response = client.options(
            "/api/v1/video/abc/extract-stream",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "GET",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert response.headers["Access-Control-Allow-Credentials"] == "true"

    def test_cors_simple_request_allowed_origin(self, client):
        response = client.get(
            "/api/v1/health",
            headers={"Origin": "http://localhost:5173"},
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"

    def test_cors_request_from_disallowed_origin(self, client):
        """Disallowed origins still get a response, but no CORS grant."""
        response = client.get(
            "/api/v1/health",
            headers={"Origin": "http://malicious-site.com"},
        )

        assert response.status_code == 200
        if "Access-Control-Allow-Origin" in response.headers:
            assert (
                response.headers["Access-Control-Allow-Origin"]
                != "http://malicious-site.com"
            )
