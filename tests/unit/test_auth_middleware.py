"""Unit tests for authentication middleware

Tests cover:
- Missing authorization header
- Invalid authorization schemes
- Incorrect API keys
- Correct API key authentication
- Development mode bypass
"""

from __future__ import annotations

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from mailcycle.api.middleware.auth import APIKeyAuth


@pytest.fixture
def create_test_app(monkeypatch):
    """Create test FastAPI app with protected endpoint"""

    def _create(api_key: str | None = None) -> FastAPI:
        if api_key is not None:
            monkeypatch.setenv("MAILCYCLE_ADMIN_API_KEY", api_key)
        else:
            monkeypatch.delenv("MAILCYCLE_ADMIN_API_KEY", raising=False)

        # Fresh auth instance that reads current environment
        auth_instance = APIKeyAuth()

        test_app = FastAPI()

        @test_app.post("/protected")
        async def protected(_authenticated: bool = Depends(auth_instance.verify_api_key)):
            return {"status": "ok"}

        return test_app

    return _create


def test_auth_rejects_missing_header(create_test_app):
    client = TestClient(create_test_app("test-key-123"))
    response = client.post("/protected")

    assert response.status_code == 401
    assert "Missing authorization header" in response.json()["detail"]
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_auth_rejects_invalid_scheme(create_test_app):
    client = TestClient(create_test_app("test-key-123"))
    response = client.post("/protected", headers={"Authorization": "Basic abc123"})

    assert response.status_code == 401
    assert "Invalid authorization header format" in response.json()["detail"]


def test_auth_rejects_malformed_header(create_test_app):
    client = TestClient(create_test_app("test-key-123"))
    response = client.post("/protected", headers={"Authorization": "InvalidFormat"})

    assert response.status_code == 401


def test_auth_rejects_wrong_key(create_test_app):
    client = TestClient(create_test_app("correct-key"))
    response = client.post("/protected", headers={"Authorization": "Bearer wrong-key"})

    assert response.status_code == 403
    assert "Invalid API key" in response.json()["detail"]


def test_auth_accepts_correct_key(create_test_app):
    client = TestClient(create_test_app("correct-key"))
    response = client.post("/protected", headers={"Authorization": "Bearer correct-key"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_auth_open_when_no_key_configured(create_test_app):
    client = TestClient(create_test_app(None))
    response = client.post("/protected")

    assert response.status_code == 200


def test_auth_refuses_when_unconfigured_in_production(create_test_app, monkeypatch):
    monkeypatch.setattr("mailcycle.api.middleware.auth.is_production", lambda: True)
    client = TestClient(create_test_app(None))

    assert client.post("/protected").status_code == 503


def test_explicit_key_overrides_environment(monkeypatch):
    monkeypatch.setenv("MAILCYCLE_ADMIN_API_KEY", "from-env")
    auth_instance = APIKeyAuth(api_key="explicit")

    assert auth_instance.verify_api_key("Bearer explicit") is True
