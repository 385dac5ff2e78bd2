"""Unit tests for health check endpoint"""

from fastapi.testclient import TestClient
from unittest.mock import patch, AsyncMock
from billing_resources.main import app

client = TestClient(app)


class TestHealthCheck:
    """Test suite for health check endpoint"""

    def test_health_check_database_healthy(self):
        """Test health check returns 200 when the database is reachable"""
        with patch('billing_resources.api.v1.health.check_database', new_callable=AsyncMock, return_value=True):
            response = client.get("/health")

            assert response.status_code == 200
            data = response.json()
            assert data["status"] == "healthy"
            assert data["services"] == {"database": True}
            assert "version" in data

    def test_health_check_database_unavailable(self):
        """Test health check returns 503 when the database is unavailable"""
        with patch('billing_resources.api.v1.health.check_database', new_callable=AsyncMock, return_value=False):
            response = client.get("/health")

            assert response.status_code == 503
            data = response.json()
            assert data["status"] == "unhealthy"
            assert data["services"]["database"] is False

    def test_health_check_carries_request_id(self):
        with patch('billing_resources.api.v1.health.check_database', new_callable=AsyncMock, return_value=True):
            response = client.get("/health", headers={"X-Request-ID": "abc-123"})

            assert response.headers["X-Request-ID"] == "abc-123"


class TestMetricsEndpoint:
    """Test suite for Prometheus metrics endpoint"""

    def test_metrics_endpoint_returns_prometheus_format(self):
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "# HELP" in response.text

    def test_metrics_endpoint_exposes_quota_metrics(self):
        response = client.get("/metrics")

        assert "quota_adjustments_total" in response.text
        assert "server_resource_edits_total" in response.text

    def test_metrics_endpoint_accessible_without_auth(self):
        response = client.get("/metrics")

        assert response.status_code not in (401, 403)


def test_root_endpoint():
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["version"]
