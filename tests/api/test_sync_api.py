from __future__ import annotations

import pytest

from livesync import create_app
from livesync.errors import PersistenceError
from tests.livesync_helpers import FEED_URL, FakeSession, build_orchestrator, feed_response

A_URL = "https://cdn.example/a.m3u8"


@pytest.fixture()
def session():
    return FakeSession({("GET", FEED_URL): feed_response([{"name": "A", "url": A_URL}, {"name": "B", "url": "https://cdn.example/b"}])})


@pytest.fixture()
def client(tmp_path, session):
    app = create_app(orchestrator=build_orchestrator(tmp_path, session))
    return app.test_client()


def test_sync_returns_summary_and_request_id(client):
    response = client.post("/api/sync")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["skipped"] is False
    assert payload["state"] == "done"
    assert (payload["processed"], payload["updated"], payload["failed"]) == (2, 1, 1)
    assert response.headers["X-Request-Id"].startswith("req_")
    assert response.headers["X-Sync-Run-Id"] == payload["run_id"]


def test_cron_respects_gate_until_forced(client):
    assert client.get("/api/cron").get_json()["state"] == "done"

    skipped = client.get("/api/cron")
    assert skipped.status_code == 200
    assert skipped.get_json()["skipped"] is True
    assert skipped.get_json()["reason"] == "interval"
    assert "last_run" in skipped.get_json()

    forced = client.post("/api/sync", json={"force": True})
    assert forced.get_json()["state"] == "done"
    assert client.get("/api/cron?force=1").get_json()["state"] == "done"


def test_sync_failure_maps_to_500(tmp_path):
    session = FakeSession({("GET", FEED_URL): feed_response({"channels": []})})
    client = create_app(orchestrator=build_orchestrator(tmp_path, session)).test_client()

    response = client.post("/api/sync")

    assert response.status_code == 500
    payload = response.get_json()
    assert "no usable channels" in payload["error"]
    assert payload["run_id"]


def test_run_logs_are_served_by_run_id(client):
    run_id = client.post("/api/sync").get_json()["run_id"]

    response = client.get(f"/api/logs/{run_id}")

    assert response.status_code == 200
    entries = response.get_json()
    assert entries[0]["message"] == "Starting sync"
    assert {"timestamp", "icon", "type", "message"} == set(entries[0])
    assert client.get("/api/logs/unknown-run").status_code == 404
    assert client.get("/api/logs/%20").status_code == 400


def test_heartbeat_counts_up(client):
    first = client.get("/api/heartbeat").get_json()
    second = client.get("/api/heartbeat").get_json()

    assert first["status"] == "ok"
    assert (first["heartbeat_count"], second["heartbeat_count"]) == (1, 2)
    assert second["last_heartbeat"].endswith("Z")


def test_schema_failure_returns_run_id_with_logs(tmp_path, monkeypatch, session):
    orchestrator = build_orchestrator(tmp_path, session)
    client = create_app(orchestrator=orchestrator).test_client()

    def broken_schema():
        raise PersistenceError("failed to create tables: database is locked", table="meta")

    monkeypatch.setattr(orchestrator.store, "ensure_schema", broken_schema)

    response = client.post("/api/sync")

    assert response.status_code == 500
    run_id = response.get_json()["run_id"]
    logs = client.get(f"/api/logs/{run_id}").get_json()
    assert logs[0]["type"] == "error"
    assert "table=meta" in logs[0]["message"]
