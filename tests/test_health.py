"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reflects UserStore.ping()
  - No authentication required
  - Cross-origin isolation headers on every response
"""

from __future__ import annotations

from unittest.mock import patch

from auth.store import UserStore


def test_health_returns_200_with_components(client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"]
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_health_reports_degraded_database(client):
    with patch.object(UserStore, "ping", return_value=False):
        data = client.get("/api/v1/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "unavailable"


def test_health_no_auth_required(client):
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_cross_origin_headers_present(client):
    resp = client.get("/api/v1/health")
    assert resp.headers["Cross-Origin-Opener-Policy"] == "same-origin-allow-popups"
    assert resp.headers["Cross-Origin-Embedder-Policy"] == "unsafe-none"


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"
