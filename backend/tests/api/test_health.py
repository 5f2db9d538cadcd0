"""Smoke tests for the health endpoint and request correlation."""

from __future__ import annotations


def test_health_reports_db_and_store(client):
    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["db"] == "ok"
    assert body["token_store"] == "sqlalchemy"


def test_request_id_is_echoed(client):
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"


def test_unknown_route_is_problem_json(client):
    resp = client.get("/api/v1/nope")
    assert resp.status_code == 404
    assert resp.mimetype == "application/problem+json"
    assert resp.get_json()["code"] == "not_found"


def test_request_id_is_not_reused_across_requests(client):
    first = client.get("/api/v1/health", headers={"X-Request-ID": "req-a"})
    second = client.get("/api/v1/health", headers={"X-Request-ID": "req-b"})
    generated = client.get("/api/v1/health")

    assert first.headers["X-Request-ID"] == "req-a"
    assert second.headers["X-Request-ID"] == "req-b"
    assert generated.headers["X-Request-ID"] not in ("req-a", "req-b")
