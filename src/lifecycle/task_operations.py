"""
Commit-side effects of the intent flow: creating tasks and applying update
actions, followed by fire-and-forget notification and event-log calls.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from integration.event_log import EventLogService
from integration.notifications import NotificationScheduler
from rhythm.config import EngineConfig
from rhythm.errors import SaveError, TaskTransitionError
from rhythm.models import (
    ActionParameters,
    EventType,
    ScheduleChange,
    ScheduleWindow,
    SnoozeOption,
    Task,
    TaskAction,
    TaskPriority,
    TaskStatus,
)
from scheduling.time_windows import TimeWindowCalculator
from storage.task_store import TaskStore

logger = logging.getLogger(__name__)


class TaskLifecycle:
    def __init__(
        self,
        store: TaskStore,
        config: Optional[EngineConfig] = None,
        calculator: Optional[TimeWindowCalculator] = None,
        notifications: Optional[NotificationScheduler] = None,
        event_log: Optional[EventLogService] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.calculator = calculator or TimeWindowCalculator(self.config)
        self.notifications = notifications
        self.event_log = event_log
        self._clock = clock

    # --- create ---------------------------------------------------------------

    def create_task(
        self,
        title: str,
        window: Optional[ScheduleWindow] = None,
        deadline: Optional[datetime] = None,
        priority: TaskPriority = TaskPriority.NORMAL,
        note: Optional[str] = None,
        utterance_text: Optional[str] = None,
    ) -> Task:
        task = Task(
            title=title,
            utterance_text=utterance_text,
            created_at=self._clock(),
            window_start=window.start if window else None,
            window_end=window.end if window else None,
            deadline=deadline,
            priority=priority,
            notes=note,
        )
        message = f"Couldn't save \"{task.title}\""
        self._write(self.store.insert, task, message)
        self._save(message)
        logger.info(f"Created task {task.id} ({task.title!r})")

        self._log_event(EventType.TASK_CREATED, task)
        self._best_effort("schedule window start", self._notify, "schedule_window_start", task)
        self._best_effort("schedule window end", self._notify, "schedule_window_end", task)
        return task

    # --- update ---------------------------------------------------------------

    def apply_update(
        self,
        task: Task,
        action: TaskAction,
        params: Optional[ActionParameters] = None,
    ) -> None:
        if action == TaskAction.DELETE:
            message = f"Couldn't remove \"{task.title}\""
            self._write(self.store.delete, task, message)
            self._save(message)
            logger.info(f"Deleted task {task.id}")
            self._best_effort("cancel notifications", self._notify, "cancel_notifications", task.id)
            self._log_event(EventType.TASK_DELETED, task)
            return

        if task.status == TaskStatus.DONE:
            raise TaskTransitionError(f"\"{task.title}\" is already done")

        now = self._clock()
        extra: dict[str, Any] = {}

        if action == TaskAction.START:
            self._start(task, now)
        elif action == TaskAction.PAUSE:
            self._pause(task, now)
        elif action == TaskAction.RESUME:
            self._resume(task, now)
        elif action == TaskAction.COMPLETE:
            self._complete(task, now)
        elif action == TaskAction.SKIP:
            task.status = TaskStatus.DONE
            task.skipped_at = now
        elif action == TaskAction.SNOOZE:
            extra = self._snooze_from_params(task, params, now)
        elif action == TaskAction.RESCHEDULE:
            if params is None or params.new_schedule is None:
                logger.warning(f"Reschedule of {task.id} without a new schedule; nothing changed")
                return
            self._reschedule(task, params.new_schedule, params.reason, now)

        self._save(f"Couldn't update \"{task.title}\"")
        logger.info(f"Applied {action.value} to task {task.id}")

        if action in (TaskAction.COMPLETE, TaskAction.SKIP):
            self._best_effort("cancel notifications", self._notify, "cancel_notifications", task.id)
        elif action in (TaskAction.SNOOZE, TaskAction.RESCHEDULE):
            self._best_effort("reschedule notifications", self._notify, "reschedule", task)
        self._log_event(EventType(action.value), task, **extra)

    def snooze_with_option(self, task: Task, option: SnoozeOption) -> Optional[datetime]:
        """Snooze by preset. Returns None (and changes nothing) when the option does not resolve."""
        if task.status == TaskStatus.DONE:
            raise TaskTransitionError(f"\"{task.title}\" is already done")

        now = self._clock()
        new_start = self.calculator.resolve(option, now)
        if new_start is None:
            logger.info(f"Snooze option {option.id} unavailable at {now.isoformat()}")
            return None

        self._snooze(task, new_start, option.id, None, now)
        self._save(f"Couldn't update \"{task.title}\"")
        self._best_effort("reschedule notifications", self._notify, "reschedule", task)
        self._log_event(
            EventType.TASK_SNOOZED, task, snooze_option=option.id, new_time=new_start.isoformat()
        )
        return new_start

    # --- transitions ----------------------------------------------------------

    @staticmethod
    def _start(task: Task, now: datetime) -> None:
        if task.status == TaskStatus.IN_PROGRESS:
            raise TaskTransitionError(f"\"{task.title}\" is already in progress")
        if task.opened_at is None:
            task.opened_at = now
        task.paused_at = None
        task.status = TaskStatus.IN_PROGRESS

    @staticmethod
    def _pause(task: Task, now: datetime) -> None:
        if task.status != TaskStatus.IN_PROGRESS or task.paused_at is not None:
            raise TaskTransitionError(f"\"{task.title}\" is not running")
        if task.opened_at is not None:
            task.total_active_seconds += max((now - task.opened_at).total_seconds(), 0.0)
        task.paused_at = now

    @staticmethod
    def _resume(task: Task, now: datetime) -> None:
        if not task.is_paused:
            raise TaskTransitionError(f"\"{task.title}\" is not paused")
        task.paused_at = None
        task.opened_at = now  # start of a new active period

    @staticmethod
    def _complete(task: Task, now: datetime) -> None:
        if task.status == TaskStatus.IN_PROGRESS and task.paused_at is None and task.opened_at:
            task.total_active_seconds += max((now - task.opened_at).total_seconds(), 0.0)
        task.status = TaskStatus.DONE
        task.completed_at = now
        task.actual_minutes = int(task.total_active_seconds // 60)

    def _snooze_from_params(
        self, task: Task, params: Optional[ActionParameters], now: datetime
    ) -> dict[str, Any]:
        reason = params.reason if params else None
        if params is not None and params.snooze_until is not None:
            new_start = params.snooze_until
            option_id = SnoozeOption.custom(max(int((new_start - now).total_seconds() // 60), 1)).id
        elif params is not None and params.snooze_duration is not None:
            new_start = now + params.snooze_duration
            option_id = SnoozeOption.custom(max(int(params.snooze_duration.total_seconds() // 60), 1)).id
        else:
            default = SnoozeOption.custom(self.config.default_snooze_minutes)
            new_start = self.calculator.resolve(default, now)
            option_id = "15_min" if self.config.default_snooze_minutes == 15 else default.id

        self._snooze(task, new_start, option_id, reason, now)
        return {"snooze_option": option_id, "new_time": new_start.isoformat()}

    @staticmethod
    def _snooze(
        task: Task, new_start: datetime, option_id: str, reason: Optional[str], now: datetime
    ) -> None:
        duration = task.window_duration
        change = ScheduleChange(
            change_type="snoozed",
            previous_window_start=task.window_start,
            previous_window_end=task.window_end,
            snooze_option=option_id,
            reason=reason,
            changed_at=now,
        )
        task.window_start = new_start
        if duration is not None:
            task.window_end = new_start + duration
        change.new_window_start = task.window_start
        change.new_window_end = task.window_end
        task.schedule_changes.append(change)
        task.snooze_count += 1
        task.last_snoozed_at = now

    @staticmethod
    def _reschedule(task: Task, window: ScheduleWindow, reason: Optional[str], now: datetime) -> None:
        task.schedule_changes.append(
            ScheduleChange(
                change_type="rescheduled",
                previous_window_start=task.window_start,
                previous_window_end=task.window_end,
                new_window_start=window.start,
                new_window_end=window.end,
                reason=reason,
                changed_at=now,
            )
        )
        task.window_start = window.start
        task.window_end = window.end

    # --- plumbing -------------------------------------------------------------

    @staticmethod
    def _write(fn: Callable[[Task], None], task: Task, message: str) -> None:
        try:
            fn(task)
        except SaveError:
            raise
        except Exception as e:
            raise SaveError(f"{message}: {e}") from e

    def _save(self, message: str) -> None:
        try:
            self.store.save()
        except SaveError:
            raise
        except Exception as e:
            raise SaveError(f"{message}: {e}") from e

    def _notify(self, method: str, arg: Any) -> None:
        if self.notifications is not None:
            getattr(self.notifications, method)(arg)

    def _log_event(self, event_type: EventType, task: Task, **extra: Any) -> None:
        if self.event_log is not None:
            self._best_effort(
                f"log {event_type.value}", self.event_log.log_task_event, event_type, task, **extra
            )

    @staticmethod
    def _best_effort(what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        try:
            fn(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Failed to {what}: {e}")
