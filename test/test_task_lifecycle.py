from datetime import datetime, timedelta

import pytest

from integration.event_log import EventLogService
from integration.notifications import NotificationScheduler
from lifecycle.task_operations import TaskLifecycle
from rhythm.config import EngineConfig
from rhythm.errors import SaveError, TaskTransitionError
from rhythm.models import (
    TOMORROW,
    TONIGHT,
    ActionParameters,
    EventType,
    ScheduleWindow,
    Task,
    TaskAction,
    TaskPriority,
    TaskStatus,
)
from storage.task_store import InMemoryTaskStore


class Clock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now


@pytest.fixture
def env(now):
    clock = Clock(now)
    store = InMemoryTaskStore()
    events = EventLogService()
    notifications = NotificationScheduler(event_log=events, clock=clock)
    lifecycle = TaskLifecycle(
        store, config=EngineConfig(), notifications=notifications, event_log=events, clock=clock
    )
    return lifecycle, store, events, notifications, clock


def _window(now):
    return ScheduleWindow(start=now + timedelta(hours=2), end=now + timedelta(hours=3), label="Later")


def test_create_task(env, now):
    lifecycle, store, events, notifications, _ = env
    task = lifecycle.create_task("Call mom", window=_window(now), priority=TaskPriority.URGENT, note="birthday")

    assert store.get(task.id) is task
    assert task.status == TaskStatus.NOT_STARTED
    assert task.snooze_count == 0
    assert task.notes == "birthday"
    assert events.recent_events(task.id)[-1].event_type == EventType.TASK_CREATED
    fire_times = [n.fire_at for n in notifications.pending(task.id)]
    assert fire_times == [now + timedelta(hours=2, minutes=-5), now + timedelta(hours=3)]


def test_create_task_store_failure_raises_save_error(flaky_store_factory, now):
    lifecycle = TaskLifecycle(flaky_store_factory(fail_on={1}), clock=lambda: now)
    with pytest.raises(SaveError):
        lifecycle.create_task("Call mom")


def test_collaborator_failures_do_not_break_commit(now):
    class BrokenLog(EventLogService):
        def log(self, *args, **kwargs):
            raise RuntimeError("log down")

    store = InMemoryTaskStore()
    lifecycle = TaskLifecycle(store, event_log=BrokenLog(), clock=lambda: now)
    task = lifecycle.create_task("Call mom")
    lifecycle.apply_update(task, TaskAction.START)
    assert task.status == TaskStatus.IN_PROGRESS


def test_start_pause_resume_complete_tracks_active_time(env, now):
    lifecycle, _, events, _, clock = env
    task = lifecycle.create_task("Write report")

    lifecycle.apply_update(task, TaskAction.START)
    assert task.status == TaskStatus.IN_PROGRESS and task.opened_at == now

    clock.now = now + timedelta(minutes=20)
    lifecycle.apply_update(task, TaskAction.PAUSE)
    assert task.is_paused
    assert task.total_active_seconds == 20 * 60

    clock.now = now + timedelta(minutes=50)
    lifecycle.apply_update(task, TaskAction.RESUME)
    assert not task.is_paused

    clock.now = now + timedelta(minutes=60)
    lifecycle.apply_update(task, TaskAction.COMPLETE)
    assert task.status == TaskStatus.DONE
    assert task.completed_at == clock.now
    assert task.actual_minutes == 30
    assert events.recent_events(task.id, limit=1)[0].event_type == EventType.TASK_COMPLETED


@pytest.mark.parametrize(
    "status, paused, action",
    [
        (TaskStatus.IN_PROGRESS, False, TaskAction.START),
        (TaskStatus.NOT_STARTED, False, TaskAction.PAUSE),
        (TaskStatus.IN_PROGRESS, True, TaskAction.PAUSE),
        (TaskStatus.IN_PROGRESS, False, TaskAction.RESUME),
        (TaskStatus.DONE, False, TaskAction.COMPLETE),
        (TaskStatus.DONE, False, TaskAction.SKIP),
        (TaskStatus.DONE, False, TaskAction.SNOOZE),
    ],
)
def test_invalid_transitions(env, now, status, paused, action):
    lifecycle, store, *_ = env
    task = Task(title="Read", status=status, paused_at=now if paused else None)
    store.insert(task)
    with pytest.raises(TaskTransitionError):
        lifecycle.apply_update(task, action)


def test_skip_without_start(env):
    lifecycle, *_ = env
    task = lifecycle.create_task("Gym")
    lifecycle.apply_update(task, TaskAction.SKIP)
    assert task.status == TaskStatus.DONE
    assert task.skipped_at is not None


def test_delete_removes_and_cancels(env, now):
    lifecycle, store, events, notifications, _ = env
    task = lifecycle.create_task("Old chore", window=_window(now))
    lifecycle.apply_update(task, TaskAction.DELETE)
    assert store.get(task.id) is None
    assert notifications.pending(task.id) == []
    assert events.recent_events(task.id, limit=1)[0].event_type == EventType.TASK_DELETED


def test_delete_allowed_when_done(env):
    lifecycle, store, *_ = env
    task = Task(title="Old", status=TaskStatus.DONE)
    store.insert(task)
    lifecycle.apply_update(task, TaskAction.DELETE)
    assert store.get(task.id) is None


def test_snooze_defaults_to_fifteen_minutes(env, now):
    lifecycle, *_ = env
    task = lifecycle.create_task("Stretch")
    lifecycle.apply_update(task, TaskAction.SNOOZE)
    assert task.window_start == now + timedelta(minutes=15)
    assert task.window_end is None
    assert task.snooze_count == 1
    assert task.schedule_changes[-1].snooze_option == "15_min"


def test_snooze_preserves_window_duration(env, now):
    lifecycle, _, _, notifications, _ = env
    task = lifecycle.create_task("Call mom", window=_window(now))
    lifecycle.apply_update(task, TaskAction.SNOOZE, ActionParameters(snooze_duration=timedelta(minutes=30)))

    assert task.window_start == now + timedelta(minutes=30)
    assert task.window_end == now + timedelta(minutes=90)
    change = task.schedule_changes[-1]
    assert change.change_type == "snoozed"
    assert change.previous_window_start == now + timedelta(hours=2)
    assert change.new_window_end == task.window_end
    assert notifications.pending(task.id)[0].fire_at == now + timedelta(minutes=25)


def test_snooze_until_wins_over_duration(env, now):
    lifecycle, *_ = env
    task = lifecycle.create_task("Call mom")
    until = now + timedelta(hours=5)
    params = ActionParameters(snooze_until=until, snooze_duration=timedelta(minutes=10))
    lifecycle.apply_update(task, TaskAction.SNOOZE, params)
    assert task.window_start == until


def test_reschedule_replaces_window(env, now):
    lifecycle, *_ = env
    task = lifecycle.create_task("Dentist", window=_window(now))
    new = ScheduleWindow(start=datetime(2026, 3, 13, 10, 0), end=None, label="Friday")
    lifecycle.apply_update(task, TaskAction.RESCHEDULE, ActionParameters(new_schedule=new, reason="clash"))
    assert task.window_start == datetime(2026, 3, 13, 10, 0)
    assert task.window_end is None
    assert task.schedule_changes[-1].change_type == "rescheduled"
    assert task.schedule_changes[-1].reason == "clash"
    assert task.snooze_count == 0


def test_reschedule_without_schedule_is_noop(env, now):
    lifecycle, *_ = env
    task = lifecycle.create_task("Dentist", window=_window(now))
    before = task.model_copy(deep=True)
    lifecycle.apply_update(task, TaskAction.RESCHEDULE)
    assert task == before


def test_snooze_with_option(env, now):
    lifecycle, *_ = env
    task = lifecycle.create_task("Laundry")
    assert lifecycle.snooze_with_option(task, TONIGHT) == datetime(2026, 3, 10, 19, 0)
    assert task.snooze_count == 1


def test_snooze_tonight_after_seven_changes_nothing(env, now):
    lifecycle, _, _, _, clock = env
    clock.now = now.replace(hour=20)
    task = lifecycle.create_task("Laundry")
    assert lifecycle.snooze_with_option(task, TONIGHT) is None
    assert task.snooze_count == 0
    assert task.window_start is None
    assert lifecycle.snooze_with_option(task, TOMORROW) == datetime(2026, 3, 11, 9, 0)


class BrokenStore(InMemoryTaskStore):
    def insert(self, task):
        raise OSError("read-only file system")

    def delete(self, task):
        raise OSError("read-only file system")


def test_store_write_errors_become_save_errors(now):
    lifecycle = TaskLifecycle(BrokenStore(), clock=lambda: now)
    with pytest.raises(SaveError, match="read-only file system"):
        lifecycle.create_task("Call mom")
    with pytest.raises(SaveError, match="Couldn't remove"):
        lifecycle.apply_update(Task(title="Old chore"), TaskAction.DELETE)
