"""
Tests for OpenAPI route existence and endpoint registration.

These tests verify that the fee and import routers are included in the
FastAPI application and appear in the OpenAPI schema.
"""
import pytest
from fastapi.testclient import TestClient
from lidgeld.main import app


class TestOpenAPIRouteExistence:
    """Tests that verify routes exist in the OpenAPI schema."""

    @pytest.fixture
    def client(self):
        """Create a test client for the FastAPI app."""
        return TestClient(app)

    @pytest.fixture
    def paths(self, client):
        response = client.get("/openapi.json")
        assert response.status_code == 200
        return response.json().get("paths", {})

    def test_openapi_schema_available(self, client):
        """OpenAPI schema should be accessible."""
        response = client.get("/openapi.json")
        assert response.status_code == 200
        assert "paths" in response.json()

    @pytest.mark.parametrize(
        "path,method",
        [
            ("/api/v1/fees/period", "post"),
            ("/api/v1/fees/overlap-check", "post"),
            ("/api/v1/fees", "get"),
            ("/api/v1/fees", "post"),
            ("/api/v1/fees/{fee_id}", "patch"),
            ("/api/v1/fees/{fee_id}/paid", "post"),
            ("/api/v1/fees/generate", "post"),
            ("/api/v1/fees/sepa-batch", "post"),
            ("/api/v1/imports/parse", "post"),
            ("/api/v1/imports/normalize", "post"),
            ("/api/v1/imports/match", "post"),
            ("/api/v1/members", "post"),
            ("/api/v1/members", "get"),
            ("/api/v1/members/{member_id}", "get"),
        ],
    )
    def test_route_exists_in_openapi(self, paths, path, method):
        assert path in paths, (
            f"Route {path} not found in OpenAPI. "
            f"Available /api/v1 paths: {[p for p in paths.keys() if p.startswith('/api/v1')]}"
        )
        assert method in paths[path], f"{method.upper()} method not defined for {path}"

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] in ("healthy", "unhealthy")
