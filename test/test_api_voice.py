import importlib

import pytest
from fastapi.testclient import TestClient

from api import state
from rhythm.config import EngineConfig
from rhythm.models import Task, TaskStatus
from storage.task_store import InMemoryTaskStore


@pytest.fixture
def session(monkeypatch):
    store = InMemoryTaskStore([Task(title="Reply to email")])
    s = state.build_session(EngineConfig(tasks_path=""), store=store)
    monkeypatch.setattr(state, "session", s)
    return s


@pytest.fixture
def client(session):
    mod = importlib.import_module("api.main")
    return TestClient(mod.app)


def test_submit_and_confirm_all(client, session):
    r = client.post("/voice/text", json={"text": "call mom tonight and mark the email task done"})
    assert r.status_code == 200
    body = r.json()
    assert body["stage"] == "reviewing_summary"
    assert len(body["intents"]) == 2

    r = client.post("/voice/confirm-all")
    assert r.status_code == 200
    body = r.json()
    assert body["stage"] == "completed"
    assert body["summary"] == "Created 1 task, Updated 1 task"
    assert body["updated"][0]["status"] == "done"


def test_single_create_review(client, session):
    body = client.post("/voice/text", json={"text": "buy milk"}).json()
    assert body["stage"] == "reviewing_create"
    assert body["create"]["title"] == "buy milk"

    body = client.post("/voice/edit", json={"title": "Buy oat milk", "priority": "urgent"}).json()
    assert body["create"]["title"] == "Buy oat milk"
    assert body["create"]["priority"] == "urgent"

    body = client.post(
        "/voice/window", json={"start": "2026-03-10T16:00:00", "end": "2026-03-10T17:00:00"}
    ).json()
    assert body["create"]["window"]["label"] == "Custom"

    body = client.post("/voice/advance").json()
    assert body["stage"] == "completed"
    assert body["completion_message"] == "Created: Buy oat milk"


def test_wrong_stage_is_conflict(client):
    r = client.post("/voice/confirm")
    assert r.status_code == 409


def test_bad_window_is_unprocessable(client):
    client.post("/voice/text", json={"text": "buy milk"})
    r = client.post("/voice/window", json={"start": "2026-03-10T16:00:00", "end": "2026-03-10T15:00:00"})
    assert r.status_code == 422


def test_no_match_reports_failed(client):
    body = client.post("/voice/text", json={"text": "finished the taxes"}).json()
    assert body["stage"] == "failed"
    assert "taxes" in body["reason"]
    assert client.post("/voice/reset").json()["stage"] == "idle"


def test_capture_endpoint(client):
    body = client.post("/voice/capture", json={"transcript": "", "duration_seconds": 1.2}).json()
    assert body["stage"] == "idle"


def test_tasks_create_list_and_snooze(client, session):
    r = client.post("/tasks", json={"title": "Stretch", "window_start": "2030-01-01T10:00:00",
                                    "window_end": "2030-01-01T10:30:00"})
    assert r.status_code == 200
    task_id = r.json()["task"]["id"]

    listed = client.get("/tasks").json()
    assert [t["title"] for t in listed["tasks"]][0] == "Stretch"

    r = client.post(f"/tasks/{task_id}/snooze", json={"option": "30_min"})
    assert r.status_code == 200
    assert r.json()["task"]["snooze_count"] == 1

    assert client.post(f"/tasks/{task_id}/snooze", json={"option": "next_week"}).status_code == 422
    assert client.post("/tasks/missing/snooze", json={"option": "30_min"}).status_code == 404
    assert client.get(f"/tasks/{task_id}/events").json()["events"][0]["event_type"] == "task_snoozed"


def test_snooze_done_task_conflicts(client, session):
    task = Task(title="Finished", status=TaskStatus.DONE)
    session.store.insert(task)
    assert client.post(f"/tasks/{task.id}/snooze", json={"option": "15_min"}).status_code == 409


def test_blank_title_rejected(client):
    assert client.post("/tasks", json={"title": "  "}).status_code == 422


def test_snooze_options(client):
    ids = [o["id"] for o in client.get("/snooze-options").json()["options"]]
    assert "tonight" in ids and "custom" not in ids


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["remote_parser"] is False
