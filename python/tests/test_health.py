"""Tests for GET /health: public, no database access, reports catalog readiness."""

from fastapi.testclient import TestClient

from curtain.app import create_app
from curtain.services.recompute import RecomputeCoordinator


class TestHealthEndpoint:
    def test_health_returns_envelope(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"data": {"status": "ok", "catalog": "ready"}}
        assert response.headers["content-type"] == "application/json"

    def test_health_reports_missing_catalog(self, session_factory):
        app = create_app(
            skip_auth_middleware=True,
            session_factory=session_factory,
            recompute_coordinator=RecomputeCoordinator(session_factory, None),
        )

        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["data"]["catalog"] == "missing"
