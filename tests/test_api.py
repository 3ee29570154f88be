from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from conftest import FakeGateway
from resolution_lab.app import create_app
from resolution_lab.application import build_lab_service, reset_lab_state
from resolution_lab.core.settings import Settings
from resolution_lab.domain import StoreEvent, StoreEventKind
from resolution_lab.infrastructure import InMemoryKeyValueStore
from resolution_lab.routes.events import format_event


@pytest.fixture()
def settings(tmp_path):
    return Settings(state_dir=tmp_path, inter_item_delay=0, path_timeout=5.0, seed_count=0)


@pytest.fixture()
def service(settings):
    service = build_lab_service(settings, gateway=FakeGateway(), storage=InMemoryKeyValueStore())
    yield service
    reset_lab_state()


@pytest.fixture()
def client(settings, service):
    app = create_app(settings, service=service)
    with TestClient(app) as test_client:
        yield test_client


def _wait_until_idle(client: TestClient, expected_history: int, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        status = client.get("/api/status").json()
        if not status["draining"] and status["history"] >= expected_history:
            return status
        if time.monotonic() > deadline:
            raise AssertionError(f"drain did not settle: {status}")
        time.sleep(0.02)


def test_root_and_status(client):
    assert client.get("/").json()["health"] == "/api/status"
    status = client.get("/api/status").json()
    assert status == {
        "draining": False,
        "queued": 0,
        "processed": 0,
        "history": 0,
        "mode": "both",
        "tiers": ["All", "Bronze", "Silver", "Gold", "Platinum"],
    }


def test_inject_list_and_filter_queue(client):
    res = client.post("/api/queue/samples", json={"count": 4})
    assert res.status_code == 200
    assert len(res.json()["items"]) == 4

    manual = client.post(
        "/api/queue/manual",
        json={"name": "Grace Hopper", "email": "grace@example.com", "transcript": "Please upgrade me."},
    ).json()
    assert manual["source_record"]["customer_id"].startswith("MAN-")
    assert manual["source_record"]["current_tier"] == "Silver"

    queue = client.get("/api/queue").json()["items"]
    assert len(queue) == 5

    silver = client.get("/api/queue", params={"tier": "Silver"}).json()["items"]
    assert manual["id"] in [item["id"] for item in silver]
    assert all(item["source_record"]["current_tier"] == "Silver" for item in silver)

    by_name = client.get("/api/queue", params={"sort": "name", "order": "desc"}).json()["items"]
    names = [item["source_record"]["name"].lower() for item in by_name]
    assert names == sorted(names, reverse=True)

    assert client.get("/api/queue", params={"sort": "color"}).status_code == 400
    assert client.delete("/api/queue").json() == {"items": []}
    assert client.get("/api/status").json()["queued"] == 0


def test_invalid_payloads_are_rejected(client):
    assert client.post("/api/queue/samples", json={"count": 0}).status_code == 400
    assert client.post("/api/queue/manual", json={"name": "", "transcript": "hi"}).status_code == 400
    assert client.put("/api/mode", json={"mode": "turbo"}).status_code == 400


def test_mode_round_trip(client):
    assert client.get("/api/mode").json() == {"mode": "both"}
    assert client.put("/api/mode", json={"mode": "deep"}).json() == {"mode": "deep"}
    assert client.get("/api/mode").json() == {"mode": "deep"}


def test_drain_processes_queue_into_history(client):
    client.post("/api/queue/samples", json={"count": 3})
    queued_ids = [item["id"] for item in client.get("/api/queue").json()["items"]]

    res = client.post("/api/queue/start")
    assert res.json()["started"] is True

    status = _wait_until_idle(client, expected_history=3)
    assert status["queued"] == 0
    assert status["processed"] == 3

    history = client.get("/api/history").json()["items"]
    assert [record["id"] for record in history] == queued_ids
    for record in history:
        assert record["fast"]["state"] == "completed"
        assert record["deep"]["state"] == "completed"
        assert record["consolidated"]["state"] == "completed"

    one = client.get(f"/api/history/{queued_ids[0]}").json()
    assert one["consolidated"]["result"]["name"] == "Ada Lovelace"


def test_start_with_empty_queue_does_nothing(client):
    assert client.post("/api/queue/start").json()["started"] is False


def test_retry_endpoint(client):
    client.post("/api/queue/manual", json={"name": "Ada", "email": "", "transcript": "New email please."})
    client.post("/api/queue/start")
    _wait_until_idle(client, expected_history=1)
    record_id = client.get("/api/history").json()["items"][0]["id"]

    assert client.post("/api/history/missing/retry").status_code == 404
    assert client.post(f"/api/history/{record_id}/retry", json={"mode": "turbo"}).status_code == 400

    res = client.post(f"/api/history/{record_id}/retry", json={"mode": "fast"})
    assert res.status_code == 202
    assert res.json()["consolidated"] is None

    deadline = time.monotonic() + 5.0
    while client.get(f"/api/history/{record_id}").json()["fast"]["state"] != "completed":
        assert time.monotonic() < deadline
        time.sleep(0.02)


def test_history_missing_record_and_clear(client):
    assert client.get("/api/history/unknown").status_code == 404
    assert client.delete("/api/history").json() == {"items": []}


def test_export_endpoint(client, tmp_path):
    assert client.get("/api/history/export", params={"format": "csv"}).status_code == 204
    assert client.get("/api/history/export", params={"format": "xml"}).status_code == 400

    client.post("/api/queue/samples", json={"count": 2})
    client.post("/api/queue/start")
    _wait_until_idle(client, expected_history=2)

    res = client.get("/api/history/export", params={"format": "csv"})
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    assert res.text.splitlines()[0] == "ID,Customer,Sentiment,Intent,Confidence,Tier"
    assert (tmp_path / "exports" / "resolution_lab_export_all.csv").exists()

    record_id = client.get("/api/history").json()["items"][0]["id"]
    res = client.get("/api/history/export", params={"format": "json", "record_id": record_id})
    assert [record["id"] for record in res.json()] == [record_id]


def test_format_event_includes_record_and_status(service):
    service.inject_manual("Ada", "ada@example.com", "Hi")
    event = StoreEvent(kind=StoreEventKind.QUEUE, action="enqueued")

    frame = format_event(service, event)

    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert '"kind": "queue"' in frame
    assert '"queued": 1' in frame
