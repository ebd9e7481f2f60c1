import importlib

from fastapi.testclient import TestClient

from api import state
from rhythm.config import EngineConfig
from storage.task_store import InMemoryTaskStore


def _client(monkeypatch):
    monkeypatch.setattr(
        state, "session", state.build_session(EngineConfig(tasks_path=""), store=InMemoryTaskStore())
    )
    mod = importlib.import_module("api.main")
    return TestClient(mod.app)


def test_metrics_endpoint_exposes_prometheus_text(monkeypatch) -> None:
    client = _client(monkeypatch)

    r = client.get("/metrics")
    assert r.status_code == 200
    assert "text/plain" in r.headers.get("content-type", "")
    body = r.text
    assert "rhythm_request_latency_seconds" in body
    assert "rhythm_open_tasks" in body


def test_utterance_increments_counters(monkeypatch) -> None:
    client = _client(monkeypatch)

    r = client.post("/voice/text", json={"text": "buy milk and walk dog"})
    assert r.status_code == 200
    client.post("/voice/confirm-all")

    # We avoid parsing because Prometheus text parsers can be fragile across environments.
    lines = client.get("/metrics").text.splitlines()
    assert any(line.startswith('rhythm_requests_total{endpoint="/voice/text",status="ok"}') for line in lines)
    assert any(line.startswith('rhythm_intents_parsed_total{kind="create"}') for line in lines)
    assert any(line.startswith('rhythm_flow_outcomes_total{outcome="completed"}') for line in lines)


def test_conflicts_are_counted(monkeypatch) -> None:
    client = _client(monkeypatch)
    assert client.post("/voice/advance").status_code == 409

    lines = client.get("/metrics").text.splitlines()
    assert any(
        line.startswith('rhythm_requests_total{endpoint="/voice/advance",status="conflict"}')
        for line in lines
    )


def test_open_tasks_gauge_tracks_store(monkeypatch) -> None:
    client = _client(monkeypatch)
    client.post("/tasks", json={"title": "Stretch"})

    depth = None
    for line in client.get("/metrics").text.splitlines():
        if line.startswith("rhythm_open_tasks "):
            depth = line.split(" ", 1)[1].strip()
            break
    assert depth is not None
    assert int(float(depth)) == 1
