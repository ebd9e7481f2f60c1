import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from api.backend import BackendAPI
from api.dependencies import get_backend
from api.metrics import (
    FLOW_OUTCOMES_TOTAL,
    INTENTS_PARSED_TOTAL,
    REQUESTS_TOTAL,
    REQUEST_LATENCY_SECONDS,
)
from rhythm.errors import InvalidStateError
from rhythm.models import TaskPriority

router = APIRouter(prefix="/voice")
logger = logging.getLogger(__name__)


class TextIn(BaseModel):
    text: str


class CaptureIn(BaseModel):
    transcript: str = ""
    duration_seconds: float = Field(0.0, ge=0)


class EditIn(BaseModel):
    title: Optional[str] = None
    priority: Optional[TaskPriority] = None


class WindowIn(BaseModel):
    start: datetime
    end: Optional[datetime] = None


class SelectIn(BaseModel):
    task_id: str


def _record_outcome(backend: BackendAPI, was_terminal: bool) -> None:
    state = backend.engine.state
    if state.is_terminal and not was_terminal:
        try:
            FLOW_OUTCOMES_TOTAL.labels(outcome=state.stage.value).inc()
        except Exception:
            pass


def _record_intents(backend: BackendAPI) -> None:
    result = backend.engine.session.result
    if result is None:
        return
    try:
        if result.create_intents:
            INTENTS_PARSED_TOTAL.labels(kind="create").inc(len(result.create_intents))
        if result.update_intents:
            INTENTS_PARSED_TOTAL.labels(kind="update").inc(len(result.update_intents))
    except Exception:
        pass


async def _call(
    endpoint: str,
    backend: BackendAPI,
    fn: Callable[..., Dict[str, Any]],
    *args: Any,
    parsed: bool = False,
) -> Dict[str, Any]:
    start = time.time()
    status = "ok"

    def _locked() -> Dict[str, Any]:
        with backend.session.lock:
            was_terminal = backend.engine.state.is_terminal
            out = fn(*args)
            if parsed:
                _record_intents(backend)
            _record_outcome(backend, was_terminal)
            return out

    try:
        return await asyncio.to_thread(_locked)
    except InvalidStateError as e:
        status = "conflict"
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        status = "invalid"
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        status = "error"
        logger.error(f"Error handling {endpoint}: {e}")
        raise
    finally:
        try:
            REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()
            REQUEST_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - start)
        except Exception:
            pass


@router.get("/state")
async def get_state(backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call("/voice/state", backend, backend.flow_snapshot)


@router.post("/text")
async def submit_text(payload: TextIn, backend: BackendAPI = Depends(get_backend)) -> dict:
    logger.info(f"Received utterance: {payload.text[:50]}...")
    return await _call("/voice/text", backend, backend.submit_text, payload.text, parsed=True)


@router.post("/capture")
async def submit_capture(payload: CaptureIn, backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call(
        "/voice/capture",
        backend,
        backend.submit_capture,
        payload.transcript,
        payload.duration_seconds,
        parsed=True,
    )


@router.post("/confirm-all")
async def confirm_all(backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call("/voice/confirm-all", backend, backend.run, "confirm_all")


@router.post("/review")
async def start_review(backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call("/voice/review", backend, backend.run, "start_review")


@router.post("/edit")
async def edit(payload: EditIn, backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call("/voice/edit", backend, backend.edit, payload.title, payload.priority)


@router.post("/window")
async def set_window(payload: WindowIn, backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call("/voice/window", backend, backend.set_custom_window, payload.start, payload.end)


@router.post("/advance")
async def advance(backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call("/voice/advance", backend, backend.run, "advance")


@router.post("/select")
async def select(payload: SelectIn, backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call("/voice/select", backend, backend.run, "select_target", payload.task_id)


@router.post("/confirm")
async def confirm_update(backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call("/voice/confirm", backend, backend.run, "confirm_update")


@router.post("/apply-all")
async def apply_to_all(backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call("/voice/apply-all", backend, backend.run, "apply_to_all_matched")


@router.post("/reset")
async def reset(backend: BackendAPI = Depends(get_backend)) -> dict:
    return await _call("/voice/reset", backend, backend.run, "reset")
