"""Tests for exceptions and the unified error envelope."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

from userapi.app.api.errors import build_error_response, register_exception_handlers
from userapi.app.core.config import settings
from userapi.app.exceptions import (
    ConflictError,
    NotFoundError,
    PayloadTooLargeError,
    TooManyRequestsError,
)


class Payload(BaseModel):
    name: str


@pytest.fixture
def client():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/missing-user")
    async def missing_user():
        raise NotFoundError("User with ID 42 not found")

    @app.get("/throttled")
    async def throttled():
        raise TooManyRequestsError(retry_after=12, limit=10, reset=12)

    @app.post("/payload")
    async def payload(data: Payload):
        return data

    @app.get("/crash")
    async def crash():
        raise RuntimeError("secret detail")

    return TestClient(app, raise_server_exceptions=False)


def test_payload_too_large_message():
    exc = PayloadTooLargeError(10 * 1024 * 1024)

    assert exc.status_code == 413
    assert exc.limit_description == "10 MB"
    assert exc.message == "Request body too large. Maximum size is 10 MB"


def test_too_many_requests_headers():
    exc = TooManyRequestsError(retry_after=30, limit=10, reset=30)

    assert exc.status_code == 429
    assert exc.headers == {
        "Retry-After": "30",
        "X-RateLimit-Limit": "10",
        "X-RateLimit-Remaining": "0",
        "X-RateLimit-Reset": "30",
    }


def test_conflict_has_no_extra_headers():
    assert ConflictError("taken").headers == {}


def test_build_error_response_omits_missing_error():
    response = build_error_response(413, "too big", "/upload", "POST")

    assert response.status_code == 413
    assert b'"statusCode":413' in response.body
    assert b'"error"' not in response.body


def test_app_exception_envelope(client):
    resp = client.get("/missing-user")

    assert resp.status_code == 404
    data = resp.json()
    assert data["statusCode"] == 404
    assert data["message"] == "User with ID 42 not found"
    assert data["error"] == "Not Found"
    assert data["path"] == "/missing-user"
    assert data["method"] == "GET"
    assert data["timestamp"].endswith("Z")


def test_app_exception_headers_are_forwarded(client):
    resp = client.get("/throttled")

    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "12"


def test_unknown_route_uses_envelope(client):
    resp = client.get("/nope")

    assert resp.status_code == 404
    assert resp.json()["error"] == "Not Found"


def test_validation_error_is_400_with_messages(client):
    resp = client.post("/payload", json={})

    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "Bad Request"
    assert isinstance(data["message"], list)
    assert data["message"][0].startswith("body.name")


def test_unhandled_exception_hides_details(client, monkeypatch):
    monkeypatch.setattr(settings, "debug", False)

    resp = client.get("/crash")

    assert resp.status_code == 500
    data = resp.json()
    assert data["message"] == "Internal server error"
    assert "secret detail" not in resp.text
    assert "Traceback" not in resp.text


def test_unhandled_exception_in_debug_mode(client, monkeypatch):
    monkeypatch.setattr(settings, "debug", True)

    resp = client.get("/crash")

    assert resp.status_code == 500
    assert resp.json()["message"] == "RuntimeError: secret detail"
    assert "Traceback" not in resp.text
