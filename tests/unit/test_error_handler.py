# tests/unit/test_error_handler.py
# Unit tests for the error envelope

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from guitarshare.middleware.error_handler import (
    GuitarGoneError,
    NotFoundError,
    StorageError,
    setup_exception_handlers,
)


class Body(BaseModel):
    name: str


def _client(debug=False) -> TestClient:
    app = FastAPI()
    setup_exception_handlers(app, debug=debug)

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Share not found")

    @app.get("/gone")
    async def gone():
        raise GuitarGoneError()

    @app.get("/storage")
    async def storage():
        raise StorageError("Failed to load share")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    @app.post("/body")
    async def body(payload: Body):
        return payload

    return TestClient(app, raise_server_exceptions=False)


class TestErrorEnvelope:
    def test_app_error(self):
        resp = _client().get("/missing", headers={"X-Request-ID": "req-1"})

        assert resp.status_code == 404
        assert resp.json() == {
            "error": {"code": "NOT_FOUND", "message": "Share not found", "request_id": "req-1"}
        }

    @pytest.mark.parametrize("path,status,code", [
        ("/gone", 404, "GUITAR_GONE"),
        ("/storage", 503, "STORAGE_ERROR"),
    ])
    def test_error_codes(self, path, status, code):
        resp = _client().get(path)

        assert resp.status_code == status
        assert resp.json()["error"]["code"] == code

    def test_unhandled_error_hides_details(self):
        resp = _client().get("/boom")

        assert resp.status_code == 500
        assert resp.json()["error"]["code"] == "INTERNAL_ERROR"
        assert "secret internals" not in resp.text

    def test_debug_includes_exception_type(self):
        resp = _client(debug=True).get("/boom")

        assert resp.json()["error"]["details"]["type"] == "RuntimeError"

    def test_request_validation_is_400(self):
        resp = _client().post("/body", json={"name": 5, "extra": "x"})

        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["errors"][0]["loc"] == ["body", "name"]
