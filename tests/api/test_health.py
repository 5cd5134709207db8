"""Tests for the /health endpoint."""

from fastapi.testclient import TestClient

from relaychat.api.main import app


class TestHealth:
    """Tests for GET /health."""

    def test_reports_services(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["stream_channel"] == "passthrough"
        assert body["tools_loaded"] > 50
        assert "version" in body

    def test_before_startup(self):
        body = TestClient(app).get("/health").json()
        assert body["stream_channel"] == "uninitialized"
        assert body["tools_loaded"] == 0
