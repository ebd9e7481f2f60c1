import threading
from dataclasses import dataclass
from typing import Optional

from extraction.intent_parser import IntentParser
from flow.intent_flow import IntentFlowEngine
from integration.event_log import EventLogService
from integration.notifications import NotificationScheduler
from lifecycle.task_operations import TaskLifecycle
from matching.task_matcher import TaskMatcher
from rhythm.config import EngineConfig
from scheduling.time_windows import TimeWindowCalculator
from storage.task_store import InMemoryTaskStore, JsonTaskStore, TaskStore


@dataclass
class Session:
    """Process-wide wiring of the engine and its collaborators."""

    config: EngineConfig
    store: TaskStore
    event_log: EventLogService
    notifications: NotificationScheduler
    calculator: TimeWindowCalculator
    lifecycle: TaskLifecycle
    engine: IntentFlowEngine
    # the engine handles one utterance at a time
    lock: threading.Lock


def build_session(config: EngineConfig, store: Optional[TaskStore] = None) -> Session:
    if store is None:
        store = JsonTaskStore(config.tasks_path) if config.tasks_path else InMemoryTaskStore()
    event_log = EventLogService(path=config.events_path or None)
    notifications = NotificationScheduler(
        event_log=event_log, minutes_before=config.window_reminder_minutes_before
    )
    calculator = TimeWindowCalculator(config)
    lifecycle = TaskLifecycle(
        store,
        config=config,
        calculator=calculator,
        notifications=notifications,
        event_log=event_log,
    )
    engine = IntentFlowEngine(
        parser=IntentParser.from_config(config),
        store=store,
        lifecycle=lifecycle,
        matcher=TaskMatcher(),
        event_log=event_log,
        config=config,
    )
    return Session(
        config=config,
        store=store,
        event_log=event_log,
        notifications=notifications,
        calculator=calculator,
        lifecycle=lifecycle,
        engine=engine,
        lock=threading.Lock(),
    )


# Global instance initialized lazily (or replaced in tests)
session: Optional[Session] = None


def get_session() -> Session:
    global session
    if session is None:
        session = build_session(EngineConfig.from_env())
    return session
