from __future__ import annotations

import json
import logging
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

from rhythm.models import EventLog, EventType, Task

logger = logging.getLogger(__name__)


class EventLogService:
    """Local-first log of user actions.

    Keeps the most recent events in memory and, when a path is given, appends
    every event to a JSON-lines file.
    """

    def __init__(self, path: Optional[str] = None, max_recent: int = 500):
        self.path = Path(path) if path else None
        self.recent: Deque[EventLog] = deque(maxlen=max_recent)

    def log(
        self,
        event_type: EventType,
        task_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> EventLog:
        event = EventLog(event_type=event_type, task_id=task_id, metadata=metadata or {})
        self.recent.appendleft(event)

        if self.path is not None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(event.model_dump(mode="json"), ensure_ascii=False) + "\n")
            except OSError as e:
                logger.warning(f"Could not append event {event.event_type.value}: {e}")

        logger.debug(f"Event {event.event_type.value} task={task_id}")
        return event

    def log_task_event(self, event_type: EventType, task: Task, **extra: Any) -> EventLog:
        metadata: Dict[str, Any] = {
            "title": task.title,
            "status": task.status.value,
            "priority": task.priority.value,
        }
        if task.window_start is not None:
            metadata["window_start"] = task.window_start.isoformat()
        if event_type == EventType.TASK_COMPLETED:
            metadata["total_active_seconds"] = task.total_active_seconds
        metadata.update(extra)
        return self.log(event_type, task_id=task.id, metadata=metadata)

    def recent_events(self, task_id: Optional[str] = None, limit: int = 10) -> List[EventLog]:
        events = [e for e in self.recent if task_id is None or e.task_id == task_id]
        return events[:limit]
