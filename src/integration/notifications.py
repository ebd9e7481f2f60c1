from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from integration.event_log import EventLogService
from rhythm.models import EventType, Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingNotification:
    identifier: str
    task_id: str
    fire_at: datetime
    title: str
    body: str


def window_start_copy(task: Task) -> tuple[str, str]:
    body = f"Maybe start with: {task.opening_action}" if task.opening_action else "Whenever you're ready."
    return f"Time for: {task.title}", body


def window_end_copy(task: Task) -> tuple[str, str]:
    return f"Wrapping up: {task.title}", "Your window is wrapping up. Did you get to it?"


class NotificationScheduler:
    """Records reminders for a task's window start and end.

    Delivery belongs to the client; this keeps the pending set and logs it.
    """

    def __init__(
        self,
        event_log: Optional[EventLogService] = None,
        minutes_before: int = 5,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.event_log = event_log
        self.minutes_before = minutes_before
        self._clock = clock
        self._pending: Dict[str, PendingNotification] = {}

    def schedule_window_start(self, task: Task) -> Optional[PendingNotification]:
        if task.window_start is None:
            return None
        title, body = window_start_copy(task)
        fire_at = task.window_start - timedelta(minutes=self.minutes_before)
        return self._schedule(f"window-start-{task.id}", task, fire_at, title, body)

    def schedule_window_end(self, task: Task) -> Optional[PendingNotification]:
        if task.window_end is None:
            return None
        title, body = window_end_copy(task)
        return self._schedule(f"window-end-{task.id}", task, task.window_end, title, body)

    def cancel_notifications(self, task_id: str) -> int:
        keys = [k for k, n in self._pending.items() if n.task_id == task_id]
        for key in keys:
            del self._pending[key]
        if keys:
            logger.info(f"Cancelled {len(keys)} notifications for task {task_id}")
        return len(keys)

    def reschedule(self, task: Task) -> None:
        self.cancel_notifications(task.id)
        self.schedule_window_start(task)
        self.schedule_window_end(task)

    def pending(self, task_id: Optional[str] = None) -> List[PendingNotification]:
        items = [n for n in self._pending.values() if task_id is None or n.task_id == task_id]
        return sorted(items, key=lambda n: n.fire_at)

    def _schedule(
        self, identifier: str, task: Task, fire_at: datetime, title: str, body: str
    ) -> Optional[PendingNotification]:
        if fire_at <= self._clock():
            logger.debug(f"Skipping {identifier}: fire time already passed")
            return None

        notification = PendingNotification(identifier, task.id, fire_at, title, body)
        self._pending[identifier] = notification
        logger.info(f"Scheduled {identifier} at {fire_at.isoformat()}")

        if self.event_log is not None:
            self.event_log.log(
                EventType.NOTIFICATION_SCHEDULED,
                task_id=task.id,
                metadata={"identifier": identifier, "fire_at": fire_at.isoformat()},
            )
        return notification
