from datetime import datetime
from typing import Any, Dict, Optional

from api.state import Session
from flow.intent_flow import FlowStage
from rhythm.models import CaptureResult, SnoozeOption, Task, TaskPriority


def serialize_task(task: Task) -> Dict[str, Any]:
    return task.model_dump(mode="json", exclude={"schedule_changes"}) | {
        "is_paused": task.is_paused,
        "change_count": len(task.schedule_changes),
    }


class BackendAPI:
    """Central orchestration component: runs engine operations and renders the flow for clients."""

    def __init__(self, session: Session):
        self.session = session
        self.engine = session.engine

    def flow_snapshot(self) -> Dict[str, Any]:
        engine = self.engine
        state = engine.state
        out: Dict[str, Any] = {
            "stage": state.stage.value,
            "reason": state.reason,
            "is_terminal": state.is_terminal,
            "summary": engine.summary,
            "progress": engine.current_intent_progress,
            "intents": engine.intent_summary,
        }
        result = engine.session.result
        if result is not None:
            out["confidence"] = result.confidence

        draft = engine.current_create
        if draft is not None and state.stage in (FlowStage.REVIEWING_CREATE, FlowStage.CUSTOMIZING_TIME):
            out["create"] = {
                "title": draft.title,
                "priority": draft.priority.value,
                "window": draft.window.model_dump(mode="json") if draft.window else None,
                "deadline": draft.intent.deadline.isoformat() if draft.intent.deadline else None,
                "note": draft.intent.note,
            }

        update = engine.current_update
        if update is not None and state.stage in (FlowStage.REVIEWING_UPDATE, FlowStage.SELECTING_TARGET):
            selected = engine.selected_task
            out["update"] = {
                "action": update.action.value,
                "action_name": update.action.display_name,
                "matched": [serialize_task(t) for t in engine.matched_tasks],
                "selected_id": selected.id if selected else None,
            }

        if state.is_terminal:
            out["completion_message"] = engine.completion_message
            out["created"] = [serialize_task(t) for t in engine.created]
            out["updated"] = [serialize_task(t) for t in engine.updated]
            out["errors"] = engine.errors
        return out

    # --- flow ---------------------------------------------------------------

    def submit_text(self, text: str) -> Dict[str, Any]:
        self.engine.submit_text(text)
        return self.flow_snapshot()

    def submit_capture(self, transcript: str, duration_seconds: float) -> Dict[str, Any]:
        self.engine.start_capture()
        self.engine.submit_capture(
            CaptureResult(transcript=transcript, duration_seconds=duration_seconds)
        )
        return self.flow_snapshot()

    def edit(self, title: Optional[str] = None, priority: Optional[TaskPriority] = None) -> Dict[str, Any]:
        if title is not None:
            self.engine.edit_title(title)
        if priority is not None:
            self.engine.edit_priority(priority)
        return self.flow_snapshot()

    def set_custom_window(self, start: datetime, end: Optional[datetime]) -> Dict[str, Any]:
        if self.engine.state.stage == FlowStage.REVIEWING_CREATE:
            self.engine.open_time_customization()
        self.engine.set_custom_window(start, end)
        return self.flow_snapshot()

    def run(self, operation: str, *args: Any) -> Dict[str, Any]:
        getattr(self.engine, operation)(*args)
        return self.flow_snapshot()

    # --- tasks --------------------------------------------------------------

    def open_tasks(self, limit: int) -> Dict[str, Any]:
        tasks = self.session.store.fetch_open_tasks(limit=limit)
        return {"tasks": [serialize_task(t) for t in tasks], "total": len(tasks)}

    def snooze(self, task: Task, option: SnoozeOption) -> Optional[datetime]:
        return self.session.lifecycle.snooze_with_option(task, option)
