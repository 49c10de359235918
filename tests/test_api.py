from __future__ import annotations

import threading
from datetime import timezone

import pytest
from fastapi.testclient import TestClient

from chirp.api import app
from chirp.lib.digest import ClockFormatter, DigestEngine, StoreUnavailable
from chirp.lib.notifications import BatchDispatcher, NotificationService

from tests.test_notification_service import SENDERS, StubDirectory, StubSink, StubStore, _sample_records


class BlockingSink(StubSink):
    """Sends to ``fast`` immediately; everyone else waits for ``release``."""

    def __init__(self, fast: str) -> None:
        super().__init__()
        self.fast = fast
        self.release = threading.Event()

    def send(self, recipient, message):
        if recipient.email != self.fast:
            self.release.wait(5)
        return super().send(recipient, message)


class FailingStore:
    def fetch_detections(self, window):
        raise StoreUnavailable("database offline")


@pytest.fixture()
def install(monkeypatch):
    def _install(store=None, directory=None, sink=None, dispatcher=None) -> NotificationService:
        service = NotificationService(
            engine=DigestEngine(
                store or StubStore(_sample_records()),
                tz=timezone.utc,
                formatter=ClockFormatter(timezone.utc),
            ),
            subscribers=directory or StubDirectory(),
            sink=sink or StubSink(),
            dispatcher=dispatcher or BatchDispatcher(max_workers=2),
            senders=SENDERS,
        )
        monkeypatch.setattr(app.state, "notification_service", service, raising=False)
        return service

    return _install


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def test_health_check(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "email-service"}


def test_uninitialized_service_returns_503(client):
    response = client.post("/email/send/daily-summary")
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "service_unavailable"


def test_daily_summary_reports_partial_failure(install, client):
    install(
        directory=StubDirectory(daily=["a@example.org", "b@example.org"]),
        sink=StubSink(failing={"b@example.org"}),
    )
    response = client.post("/email/send/daily-summary")
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "requested": 2,
        "total": 2,
        "successful": 1,
        "failed": 1,
        "cancelled": 0,
    }


def test_daily_summary_timeout_reports_completed_sends_as_total(install, client):
    sink = BlockingSink(fast="a@example.org")
    install(
        directory=StubDirectory(daily=["a@example.org", "b@example.org", "c@example.org"]),
        sink=sink,
        dispatcher=BatchDispatcher(max_workers=1, timeout=0.3),
    )
    try:
        response = client.post("/email/send/daily-summary")
    finally:
        sink.release.set()

    body = response.json()
    assert response.status_code == 200
    assert body["requested"] == 3
    assert body["successful"] + body["failed"] == body["total"]
    assert (body["total"], body["successful"], body["cancelled"]) == (1, 1, 2)


def test_daily_summary_without_subscribers(install, client):
    install(directory=StubDirectory())
    response = client.post("/email/send/daily-summary")
    assert response.json() == {"success": True, "message": "No active subscribers"}


def test_daily_summary_store_failure_is_500(install, client):
    install(store=FailingStore(), directory=StubDirectory(daily=["a@example.org"]))
    response = client.post("/email/send/daily-summary")
    assert response.status_code == 500
    assert response.json()["error"]["code"] == "store_unavailable"


def test_special_sighting_requires_species(install, client):
    install()
    response = client.post("/email/send/special-sighting", json={"imageUrl": "https://cdn.example.org/x.jpg"})
    assert response.status_code == 400
    assert response.json()["error"] == {"code": "bad_request", "message": "Species is required"}


def test_special_sighting_rejects_invalid_confidence(install, client):
    install()
    response = client.post("/email/send/special-sighting", json={"species": "Jay", "confidence": 3})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_special_sighting_dispatches(install, client):
    sink = StubSink()
    install(directory=StubDirectory(daily=["a@example.org"], alerts_only=["x@example.org"]), sink=sink)
    response = client.post(
        "/email/send/special-sighting",
        json={"species": "Painted Bunting", "imageUrl": "https://cdn.example.org/pb.jpg", "confidence": 0.8},
    )
    assert response.status_code == 200
    assert response.json()["total"] == 2
    assert len(sink.sent) == 2


def test_subscribe_and_unsubscribe(install, client):
    install()
    response = client.post("/email/subscribe", json={"email": "ada@example.org", "name": "Ada"})
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "subscription_id": 1,
        "email": "ada@example.org",
        "message_id": "stub-1",
    }

    response = client.post("/email/unsubscribe", json={"email": "ada@example.org"})
    assert response.status_code == 200
    assert response.json()["message"] == "Successfully unsubscribed"


def test_subscribe_requires_email(install, client):
    install()
    response = client.post("/email/subscribe", json={"name": "Nobody"})
    assert response.status_code == 400


def test_subscribe_welcome_failure_is_502(install, client):
    install(sink=StubSink(failing={"ada@example.org"}))
    response = client.post("/email/subscribe", json={"email": "ada@example.org"})
    assert response.status_code == 502
    assert response.json()["error"]["code"] == "send_failed"


def test_unsubscribe_unknown_email_is_404(install, client):
    install()
    response = client.post("/email/unsubscribe", json={"email": "ghost@example.org"})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"


def test_digest_preview(install, client):
    install()
    response = client.get("/email/digest", params={"now": "2024-05-02T08:00:00+00:00"})
    assert response.status_code == 200
    body = response.json()
    assert body["new_count"] == 2
    assert body["top_species"] == "Jay"
    assert [item["id"] for item in body["gallery"]] == ["B", "A"]
    assert body["timeline"][0] == {"time": "15:00", "species": "Jay", "image_url": "https://cdn.example.org/B.jpg"}


def test_digest_preview_rejects_bad_timestamp(install, client):
    install()
    response = client.get("/email/digest", params={"now": "yesterday"})
    assert response.status_code == 400
