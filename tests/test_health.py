"""Tests for health endpoints."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from clm.main import app


@pytest.fixture(autouse=True)
def no_temporal_server():
    """Startup must not try to reach a real Temporal server."""
    with patch("clm.main.TemporalClient.connect", AsyncMock(side_effect=RuntimeError("no temporal"))):
        yield


class TestLivenessEndpoint:
    """Tests for /health liveness endpoint."""

    def test_health_check_returns_ok(self):
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/health")
            assert response.status_code == 200
            assert response.json() == {"status": "ok"}


class TestReadinessEndpoint:
    """Tests for /health/ready readiness endpoint."""

    def test_readiness_all_ok(self, mock_db_session):
        with patch("clm.routes.health.AsyncSessionLocal", return_value=mock_db_session):
            with TestClient(app, raise_server_exceptions=False) as client:
                app.state.temporal = MagicMock()

                response = client.get("/health/ready")

                assert response.status_code == 200
                assert response.json() == {
                    "status": "ok",
                    "checks": {"database": "ok", "temporal": "ok"},
                }

    def test_readiness_db_failure(self, mock_db_session):
        mock_db_session.execute = AsyncMock(side_effect=Exception("Connection refused"))

        with patch("clm.routes.health.AsyncSessionLocal", return_value=mock_db_session):
            with TestClient(app, raise_server_exceptions=False) as client:
                app.state.temporal = MagicMock()

                response = client.get("/health/ready")

                assert response.status_code == 503
                assert "error" in response.json()["checks"]["database"]

    def test_readiness_temporal_not_connected(self, mock_db_session):
        with patch("clm.routes.health.AsyncSessionLocal", return_value=mock_db_session):
            with TestClient(app, raise_server_exceptions=False) as client:
                # Startup could not connect
                assert app.state.temporal is None

                response = client.get("/health/ready")

                assert response.status_code == 503
                assert response.json()["checks"]["temporal"] == "not connected"
