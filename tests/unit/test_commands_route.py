"""
Tests for the command HTTP endpoint.

Run: pytest tests/unit/test_commands_route.py -v
"""

import pytest
from fastapi.testclient import TestClient

from main import app
from services.command_pipeline import get_command_pipeline

from tests.factories import ProductFactory


@pytest.fixture
def client(pipeline):
    """TestClient with the pipeline replaced by the test pipeline."""
    app.dependency_overrides[get_command_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestRunCommand:
    """Tests for POST /api/command"""

    def test_returns_result_envelope(self, client, fake_backend):
        fake_backend.products = [ProductFactory.create(name="Desk")]

        response = client.post("/api/command", json={"command": "show all products"})

        assert response.status_code == 200
        assert [p["name"] for p in response.json()["result"]] == ["Desk"]

    @pytest.mark.parametrize("body", [{}, {"command": ""}, {"command": "   "}, {"command": None}])
    def test_missing_command(self, client, body):
        response = client.post("/api/command", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing command"}

    def test_app_error_uses_its_status(self, client):
        response = client.post("/api/command", json={"command": "Delete HP Spectre"})

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "Product 'HP Spectre' not found"
        assert body["code"] == "PRODUCT_NOT_FOUND"
        assert body["details"] == {"reference": "HP Spectre"}

    def test_undetermined_criteria_is_422(self, client):
        response = client.post("/api/command", json={"command": "update all gadgets"})

        assert response.status_code == 422
        assert response.json()["code"] == "CRITERIA_UNDETERMINED"

    def test_backend_error_is_503(self, client, fake_backend):
        fake_backend.fail("list_products", "database offline")

        response = client.post("/api/command", json={"command": "show all products"})

        assert response.status_code == 503
        assert response.json()["code"] == "BACKEND_ERROR"

    def test_unexpected_error_is_500(self, client, pipeline, monkeypatch):
        async def explode(command):
            raise RuntimeError("boom")

        monkeypatch.setattr(pipeline, "handle", explode)

        response = client.post("/api/command", json={"command": "show all products"})

        assert response.status_code == 500
        assert response.json()["code"] == "INTERNAL_ERROR"


class TestServiceEndpoints:
    """Tests for / and /health"""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["endpoints"]["command"] == "/api/command"

    def test_health_reports_cache(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["cache_entries"] >= 0
        assert "tool_catalog_fetched_at" in body
