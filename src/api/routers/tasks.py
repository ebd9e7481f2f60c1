import asyncio
import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.backend import BackendAPI, serialize_task
from api.dependencies import get_backend
from api.metrics import OPEN_TASKS, REQUESTS_TOTAL, REQUEST_LATENCY_SECONDS
from rhythm.errors import SaveError, TaskTransitionError
from rhythm.models import STANDARD_OPTIONS, ScheduleWindow, SnoozeOption, TaskPriority

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateTaskIn(BaseModel):
    title: str
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    deadline: Optional[datetime] = None
    priority: TaskPriority = TaskPriority.NORMAL
    note: Optional[str] = None


class SnoozeIn(BaseModel):
    option: str  # "15_min", "tonight", "custom_45", ...


def _count(endpoint: str, status: str, start: float) -> None:
    try:
        REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
        REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - start)
    except Exception:
        pass


@router.get("/tasks")
async def get_tasks(limit: int = 20, backend: BackendAPI = Depends(get_backend)) -> dict:
    """Open tasks, tasks with a window first."""
    start = time.time()
    out = await asyncio.to_thread(backend.open_tasks, limit)
    try:
        OPEN_TASKS.set(out["total"])
    except Exception:
        pass
    _count("/tasks", "ok", start)
    return out


@router.post("/tasks")
async def create_task(payload: CreateTaskIn, backend: BackendAPI = Depends(get_backend)) -> dict:
    start = time.time()
    if not payload.title.strip():
        _count("/tasks/create", "invalid", start)
        raise HTTPException(status_code=422, detail="Title must not be blank")
    if payload.window_start and payload.window_end and payload.window_end <= payload.window_start:
        _count("/tasks/create", "invalid", start)
        raise HTTPException(status_code=422, detail="window_end must be after window_start")

    window = None
    if payload.window_start is not None:
        window = ScheduleWindow(start=payload.window_start, end=payload.window_end, label="Custom")

    def _create():
        with backend.session.lock:
            return backend.session.lifecycle.create_task(
                payload.title,
                window=window,
                deadline=payload.deadline,
                priority=payload.priority,
                note=payload.note,
            )

    try:
        task = await asyncio.to_thread(_create)
    except SaveError as e:
        _count("/tasks/create", "error", start)
        raise HTTPException(status_code=500, detail=str(e))

    _count("/tasks/create", "ok", start)
    return {"status": "created", "task": serialize_task(task)}


@router.get("/snooze-options")
async def snooze_options() -> dict:
    return {
        "options": [
            {"id": o.id, "display_name": o.display_name, "gentle_label": o.gentle_label}
            for o in STANDARD_OPTIONS
        ]
    }


@router.post("/tasks/{task_id}/snooze")
async def snooze_task(
    task_id: str, payload: SnoozeIn, backend: BackendAPI = Depends(get_backend)
) -> dict:
    start = time.time()
    try:
        option = SnoozeOption.from_id(payload.option)
    except ValueError:
        _count("/tasks/snooze", "invalid", start)
        raise HTTPException(status_code=422, detail=f"Unknown snooze option: {payload.option}")

    task = backend.session.store.get(task_id)
    if task is None:
        _count("/tasks/snooze", "not_found", start)
        raise HTTPException(status_code=404, detail="Task not found")

    def _snooze():
        with backend.session.lock:
            return backend.snooze(task, option)

    try:
        new_start = await asyncio.to_thread(_snooze)
    except TaskTransitionError as e:
        _count("/tasks/snooze", "conflict", start)
        raise HTTPException(status_code=409, detail=str(e))
    except SaveError as e:
        _count("/tasks/snooze", "error", start)
        raise HTTPException(status_code=500, detail=str(e))

    if new_start is None:
        _count("/tasks/snooze", "conflict", start)
        raise HTTPException(
            status_code=409,
            detail=f"'{option.display_name}' is not available right now, pick another time",
        )

    _count("/tasks/snooze", "ok", start)
    return {"status": "snoozed", "new_start": new_start.isoformat(), "task": serialize_task(task)}


@router.get("/tasks/{task_id}/events")
async def task_events(task_id: str, limit: int = 10, backend: BackendAPI = Depends(get_backend)) -> dict:
    if backend.session.store.get(task_id) is None:
        raise HTTPException(status_code=404, detail="Task not found")
    events = backend.session.event_log.recent_events(task_id=task_id, limit=limit)
    return {"events": [e.model_dump(mode="json") for e in events]}
