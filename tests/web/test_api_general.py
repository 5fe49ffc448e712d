"""Tests for general web API behavior."""

from __future__ import annotations

import pytest
from flask.testing import FlaskClient

pytestmark = pytest.mark.web


class TestHealth:
    def test_health(self, client: FlaskClient) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json() == {"status": "ok"}


class TestErrors:
    def test_unknown_route_is_json_404(self, client: FlaskClient) -> None:
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Not found"}

    def test_wrong_method(self, client: FlaskClient) -> None:
        response = client.get("/sync/delta", headers={"X-User-ID": "alice"})
        assert response.status_code == 405

    def test_cors_header(self, client: FlaskClient) -> None:
        response = client.get("/api/health", headers={"Origin": "http://example.com"})
        # newer flask-cors releases echo the request origin instead of "*"
        assert response.headers.get("Access-Control-Allow-Origin") in ("*", "http://example.com")
