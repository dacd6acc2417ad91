"""Integration tests for the cycle HTTP API

The app is exercised through TestClient with the controller and store
dependencies overridden to use in-memory adapters.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from mailcycle.api.app import app
from mailcycle.api.middleware import auth as auth_module
from mailcycle.api.routes.cycle import get_controller, get_store
from mailcycle.config import Settings
from mailcycle.cycle.errors import TransientAdapterError
from mailcycle.gmail.models import MailMessage, MessagePart
from mailcycle.observability.telemetry import time_block
from mailcycle.runtime import build_controller


@pytest.fixture
def settings(categories, tmp_path) -> Settings:
    return Settings(
        categories=categories,
        target_email="hr@example.com",
        sender_email="me@example.com",
        db_path=tmp_path / "unused.db",
    )


@pytest.fixture
def client(settings, store, source, sender, monkeypatch):
    monkeypatch.setattr(auth_module.auth, "api_key", None)
    app.dependency_overrides[get_controller] = lambda: build_controller(
        settings, store=store, source=source, sender=sender
    )
    app.dependency_overrides[get_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["service"] == "mailcycle"


def test_health_reports_latency(client):
    with time_block("composer.send"):
        pass

    latency = client.get("/health").json()["latency"]

    assert latency["composer.send"]["count"] == 1
    assert latency["composer.compose"]["count"] == 0


def test_run_waiting(client):
    response = client.post("/cycle/run", json={"now": "2024-03-05T07:00:00+00:00"})

    assert response.status_code == 200
    body = response.json()
    assert body["period"] == "2024-03"
    assert body["result"] == "waiting"
    assert body["missing"] == ["BVG", "Charges"]


def test_run_without_body_uses_current_time(client):
    response = client.post("/cycle/run")

    assert response.status_code == 200
    assert response.json()["result"] == "waiting"


def test_run_sends_and_period_reads_complete(client, seed_bvg, seed_charges, sender):
    seed_bvg()
    seed_charges()

    response = client.post("/cycle/run", json={"now": "2024-03-05T07:00:00+00:00"})

    assert response.status_code == 200
    assert response.json()["result"] == "sent"
    assert len(sender.sent) == 1

    state = client.get("/cycle/2024-03").json()
    assert state["status"] == "COMPLETE"
    assert [a["category"] for a in state["arrivals"]] == ["BVG", "Charges"]
    assert all(a["received"] for a in state["arrivals"])
    # Message ids are hashed, never echoed
    assert all(a["message_id_hash"] not in ("bvg-1", "charges-1") for a in state["arrivals"])


def test_dry_run_does_not_send(client, seed_bvg, seed_charges, sender):
    seed_bvg()
    seed_charges()

    response = client.post(
        "/cycle/run", json={"now": "2024-03-05T07:00:00+00:00", "dry_run": True}
    )

    assert response.status_code == 200
    assert response.json()["result"] == "composed"
    assert response.json()["attachment_filename"] == "charges-2024-03.pdf"
    assert sender.sent == []
    assert client.get("/cycle/2024-03").json()["status"] == "PENDING"


def test_transient_failure_is_503(client, seed_bvg, seed_charges, sender):
    seed_bvg()
    seed_charges()
    sender.fail_with = TransientAdapterError("gmail send failed: HTTP 500", 500)

    response = client.post("/cycle/run", json={"now": "2024-03-05T07:00:00+00:00"})

    assert response.status_code == 503
    assert "gmail" not in response.json()["detail"].lower()
    assert client.get("/cycle/2024-03").json()["status"] == "PENDING"


def test_content_failure_is_500(client, source, seed_bvg):
    seed_bvg()
    source.add(
        "bvgcharges@example.com",
        MailMessage(message_id="charges-1", parts=[MessagePart(mime_type="text/plain", data=b"no file")]),
    )

    response = client.post("/cycle/run", json={"now": "2024-03-05T07:00:00+00:00"})

    assert response.status_code == 500
    assert response.json()["detail"] == "A required email did not have the expected content."


def test_unknown_period_is_pending(client):
    body = client.get("/cycle/2023-11").json()

    assert body == {"period": "2023-11", "status": "PENDING", "last_updated": None, "arrivals": []}


def test_malformed_period_rejected(client):
    assert client.get("/cycle/2024-13").status_code == 422


def test_invalid_body_rejected(client):
    response = client.post("/cycle/run", json={"now": "not-a-date"})

    assert response.status_code == 422
    assert "now" in response.json()["invalid_fields"]


def test_run_requires_key_when_configured(client, monkeypatch):
    monkeypatch.setattr(auth_module.auth, "api_key", "secret-key")

    assert client.post("/cycle/run").status_code == 401
    assert client.post("/cycle/run", headers={"Authorization": "Bearer nope"}).status_code == 403
    ok = client.post("/cycle/run", headers={"Authorization": "Bearer secret-key"})
    assert ok.status_code == 200
