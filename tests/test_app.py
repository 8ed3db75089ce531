import logging
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from screening.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    PerformanceMiddleware,
    RequestLoggingMiddleware,
)
from screening.utils.exceptions import BusinessLogicError, NotFoundError

SAMPLE_DATA = Path(__file__).resolve().parent.parent / "data" / "form-submissions.json"


@pytest.fixture
def middleware_app():
    app = FastAPI()
    app.add_middleware(ExceptionHandlerMiddleware)
    app.add_middleware(PerformanceMiddleware, slow_request_threshold=30.0)
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/ok")
    async def ok():
        return {"ok": True}

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Rubric r1 not found", resource="rubric", resource_id="r1")

    @app.post("/conflict")
    async def conflict():
        raise BusinessLogicError("An evaluation run is already in progress", rule="single_active_run")

    @app.get("/crash")
    async def crash():
        raise RuntimeError("unexpected")

    return app


class TestMiddleware:

    def test_success_headers(self, middleware_app):
        response = TestClient(middleware_app).get("/ok")

        assert response.status_code == 200
        assert response.headers["X-Request-ID"]
        assert float(response.headers["X-Processing-Time"]) >= 0

    def test_service_exception_is_mapped(self, middleware_app):
        response = TestClient(middleware_app).get("/missing")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["status_code"] == 404
        assert body["request_id"] == response.headers["X-Request-ID"]
        assert body["error"]["details"] == {"resource": "rubric", "resource_id": "r1"}

    def test_business_rule_conflict(self, middleware_app):
        response = TestClient(middleware_app).post("/conflict", json={"ignored": True})

        assert response.status_code == 409
        assert response.json()["error"]["error_code"] == "BUSINESS_LOGIC_ERROR"

    def test_one_request_id_across_layers(self, middleware_app, caplog):
        caplog.set_level(logging.INFO, logger="screening")

        response = TestClient(middleware_app).get("/missing")

        logged_ids = {r.request_id for r in caplog.records if hasattr(r, "request_id")}
        assert logged_ids == {response.headers["X-Request-ID"]}
        assert any(r.getMessage().startswith("Response: GET /missing") for r in caplog.records)

    def test_unhandled_exception(self, middleware_app):
        response = TestClient(middleware_app).get("/crash")

        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"


class TestApplication:

    @pytest.fixture
    def client(self, monkeypatch):
        monkeypatch.setenv("PROFILES_PATH", str(SAMPLE_DATA))
        monkeypatch.setenv("DISPATCH_DELAY_MS", "0")
        from screening.main import app

        with TestClient(app) as client:
            yield client

    def test_root_and_health(self, client):
        assert client.get("/").json()["status"] == "ok"
        assert client.get("/health").json()["status"] == "healthy"

    def test_profiles_loaded_at_startup(self, client):
        profiles = client.get("/api/profiles").json()

        assert len(profiles) == 6
        assert profiles[0]["id"] == "amara-okafor-amara.okafor"

    def test_startup_without_profile_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PROFILES_PATH", str(tmp_path / "absent.json"))
        from screening.main import app

        with TestClient(app) as client:
            assert client.get("/api/profiles").json() == []

    def test_routes_mounted_under_api(self, client):
        assert client.get("/api/rubrics").json() == []
        assert client.get("/api/evaluations/progress").json()["isEvaluating"] is False
        assert client.get("/api/evaluations/unknown").status_code == 404
