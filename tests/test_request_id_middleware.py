from __future__ import annotations

from fastapi.testclient import TestClient

from backend.core.config import LogSettings, Settings
from backend.core.app_factory import create_app


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)
    assert len(generated) > 0

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None


def test_error_body_carries_request_id(client: TestClient):
    resp = client.get("/does-not-exist", headers={"X-Request-ID": "trace-42"})

    assert resp.status_code == 404
    assert resp.json()["error"]["request_id"] == "trace-42"
    assert resp.headers.get("X-Request-ID") == "trace-42"


def test_unhandled_error_keeps_request_id(app):
    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    with TestClient(app, raise_server_exceptions=False) as client:
        resp = client.get("/boom", headers={"X-Request-ID": "trace-500"})

    assert resp.status_code == 500
    error = resp.json()["error"]
    assert error["code"] == "internal_server_error"
    assert error["request_id"] == "trace-500"
    assert resp.headers.get("X-Request-ID") == "trace-500"
    assert "secret internals" not in resp.text


def test_custom_header_name(relational_store, cache_store, user_repository):
    settings = Settings(log=LogSettings(request_id_header="X-Correlation-ID"))
    app = create_app(
        settings,
        relational_store=relational_store,
        cache_store=cache_store,
        user_repository=user_repository,
        configure_logs=False,
    )

    with TestClient(app) as client:
        resp = client.get("/health", headers={"X-Correlation-ID": "corr-1"})

    assert resp.headers.get("X-Correlation-ID") == "corr-1"
