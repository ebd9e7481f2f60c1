from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaskStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @property
    def display_name(self) -> str:
        return {
            TaskStatus.NOT_STARTED: "Not Started",
            TaskStatus.IN_PROGRESS: "In Progress",
            TaskStatus.DONE: "Done",
        }[self]


class TaskPriority(str, Enum):
    URGENT = "urgent"
    NORMAL = "normal"
    LOW = "low"

    @property
    def sort_order(self) -> int:
        return {TaskPriority.URGENT: 0, TaskPriority.NORMAL: 1, TaskPriority.LOW: 2}[self]


class TaskAction(str, Enum):
    """Actions an update intent can apply. Values double as event types."""

    START = "task_started"
    PAUSE = "task_paused"
    RESUME = "task_resumed"
    COMPLETE = "task_completed"
    SKIP = "task_skipped"
    DELETE = "task_deleted"
    SNOOZE = "task_snoozed"
    RESCHEDULE = "task_rescheduled"

    @classmethod
    def from_value(cls, value: str) -> Optional["TaskAction"]:
        """Accepts wire values ("task_completed"), short names ("complete") and past tense ("completed")."""
        v = (value or "").strip().lower()
        for action in cls:
            if v in {action.value, action.name.lower(), action.past_tense}:
                return action
        return None

    @property
    def display_name(self) -> str:
        return self.name.capitalize()

    @property
    def past_tense(self) -> str:
        return self.value.removeprefix("task_")

    @property
    def confirmation_message(self) -> str:
        return _CONFIRMATION_MESSAGES[self]


_CONFIRMATION_MESSAGES = {
    TaskAction.START: "Let's get started!",
    TaskAction.PAUSE: "Taking a break",
    TaskAction.RESUME: "Picking up where you left off",
    TaskAction.COMPLETE: "Nice work!",
    TaskAction.SKIP: "Skipped for now",
    TaskAction.DELETE: "Removed",
    TaskAction.SNOOZE: "Snoozed",
    TaskAction.RESCHEDULE: "Rescheduled",
}


class EventType(str, Enum):
    TASK_CREATED = "task_created"
    TASK_STARTED = "task_started"
    TASK_PAUSED = "task_paused"
    TASK_RESUMED = "task_resumed"
    TASK_COMPLETED = "task_completed"
    TASK_SKIPPED = "task_skipped"
    TASK_DELETED = "task_deleted"
    TASK_SNOOZED = "task_snoozed"
    TASK_RESCHEDULED = "task_rescheduled"
    WINDOW_CHANGED = "window_changed"
    VOICE_INPUT_STARTED = "voice_input_started"
    VOICE_INPUT_COMPLETED = "voice_input_completed"
    VOICE_INPUT_CANCELLED = "voice_input_cancelled"
    NOTIFICATION_SCHEDULED = "notification_scheduled"


# --- snooze presets ---------------------------------------------------------


class SnoozeKind(str, Enum):
    TEN_MINUTES = "10_min"
    FIFTEEN_MINUTES = "15_min"
    THIRTY_MINUTES = "30_min"
    ONE_HOUR = "1_hour"
    TWO_HOURS = "2_hours"
    TONIGHT = "tonight"
    TOMORROW = "tomorrow"
    CUSTOM = "custom"


_FIXED_SNOOZE_MINUTES = {
    SnoozeKind.TEN_MINUTES: 10,
    SnoozeKind.FIFTEEN_MINUTES: 15,
    SnoozeKind.THIRTY_MINUTES: 30,
    SnoozeKind.ONE_HOUR: 60,
    SnoozeKind.TWO_HOURS: 120,
}

_SNOOZE_LABELS = {
    SnoozeKind.TEN_MINUTES: ("10 minutes", "Just a quick break"),
    SnoozeKind.FIFTEEN_MINUTES: ("15 minutes", "A short pause"),
    SnoozeKind.THIRTY_MINUTES: ("30 minutes", "A little more time"),
    SnoozeKind.ONE_HOUR: ("1 hour", "Come back in an hour"),
    SnoozeKind.TWO_HOURS: ("2 hours", "Take your time"),
    SnoozeKind.TONIGHT: ("Tonight", "Later this evening"),
    SnoozeKind.TOMORROW: ("Tomorrow", "Fresh start tomorrow"),
}


@dataclass(frozen=True)
class SnoozeOption:
    kind: SnoozeKind
    minutes: Optional[int] = None  # custom only

    def __post_init__(self) -> None:
        if self.kind is SnoozeKind.CUSTOM:
            if self.minutes is None or self.minutes <= 0:
                raise ValueError("custom snooze needs a positive number of minutes")
        elif self.minutes is not None:
            raise ValueError("only custom snoozes carry minutes")

    @classmethod
    def custom(cls, minutes: int) -> "SnoozeOption":
        return cls(SnoozeKind.CUSTOM, minutes)

    @classmethod
    def from_id(cls, option_id: str) -> "SnoozeOption":
        raw = option_id.strip().lower()
        if raw.startswith("custom_"):
            return cls.custom(int(raw.removeprefix("custom_")))
        return cls(SnoozeKind(raw))

    @property
    def id(self) -> str:
        if self.kind is SnoozeKind.CUSTOM:
            return f"custom_{self.minutes}"
        return self.kind.value

    @property
    def offset(self) -> Optional[timedelta]:
        """Fixed offset from the reference time, or None for clock-anchored presets."""
        if self.kind is SnoozeKind.CUSTOM:
            return timedelta(minutes=self.minutes)
        minutes = _FIXED_SNOOZE_MINUTES.get(self.kind)
        return timedelta(minutes=minutes) if minutes is not None else None

    @property
    def display_name(self) -> str:
        if self.kind is SnoozeKind.CUSTOM:
            return f"{self.minutes} minutes"
        return _SNOOZE_LABELS[self.kind][0]

    @property
    def gentle_label(self) -> str:
        if self.kind is SnoozeKind.CUSTOM:
            return "When works for you?"
        return _SNOOZE_LABELS[self.kind][1]


TEN_MINUTES = SnoozeOption(SnoozeKind.TEN_MINUTES)
FIFTEEN_MINUTES = SnoozeOption(SnoozeKind.FIFTEEN_MINUTES)
THIRTY_MINUTES = SnoozeOption(SnoozeKind.THIRTY_MINUTES)
ONE_HOUR = SnoozeOption(SnoozeKind.ONE_HOUR)
TWO_HOURS = SnoozeOption(SnoozeKind.TWO_HOURS)
TONIGHT = SnoozeOption(SnoozeKind.TONIGHT)
TOMORROW = SnoozeOption(SnoozeKind.TOMORROW)

STANDARD_OPTIONS = (FIFTEEN_MINUTES, THIRTY_MINUTES, ONE_HOUR, TWO_HOURS, TONIGHT, TOMORROW)


# --- tasks ------------------------------------------------------------------


class ScheduleChange(BaseModel):
    change_type: Literal["snoozed", "rescheduled"]
    previous_window_start: Optional[datetime] = None
    previous_window_end: Optional[datetime] = None
    new_window_start: Optional[datetime] = None
    new_window_end: Optional[datetime] = None
    snooze_option: Optional[str] = None
    reason: Optional[str] = None
    changed_at: datetime = Field(default_factory=datetime.now)


class Task(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = Field(..., min_length=1)
    utterance_text: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    # flexible window, not a rigid deadline
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    deadline: Optional[datetime] = None

    status: TaskStatus = TaskStatus.NOT_STARTED
    priority: TaskPriority = TaskPriority.NORMAL

    opened_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    skipped_at: Optional[datetime] = None
    total_active_seconds: float = Field(0.0, ge=0)
    actual_minutes: Optional[int] = None

    snooze_count: int = Field(0, ge=0)
    last_snoozed_at: Optional[datetime] = None

    opening_action: Optional[str] = None
    notes: Optional[str] = None
    schedule_changes: List[ScheduleChange] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2

    @property
    def window_duration(self) -> Optional[timedelta]:
        if self.window_start is None or self.window_end is None:
            return None
        return self.window_end - self.window_start

    @property
    def is_paused(self) -> bool:
        return self.status == TaskStatus.IN_PROGRESS and self.paused_at is not None

    @property
    def is_open(self) -> bool:
        return self.status != TaskStatus.DONE


# --- intents ----------------------------------------------------------------


class ScheduleWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    label: str = ""  # "this evening", "tomorrow morning", ...
    is_flexible: bool = False  # "around 3pm" vs "at 3pm"

    @property
    def display_description(self) -> str:
        if self.start is not None:
            s = self.start
            return f"{s:%a, %b} {s.day} at {s.hour % 12 or 12}:{s:%M %p}"
        return self.label


class TaskTargetQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    title_keywords: Optional[List[str]] = None
    time_reference: Optional[str] = None
    status_filter: Optional[TaskStatus] = None
    priority_filter: Optional[TaskPriority] = None
    is_multiple: bool = False
    raw_description: str = ""


class ActionParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    snooze_duration: Optional[timedelta] = None
    snooze_until: Optional[datetime] = None
    new_schedule: Optional[ScheduleWindow] = None
    reason: Optional[str] = None


class CreateTaskIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    schedule_window: Optional[ScheduleWindow] = None
    deadline: Optional[datetime] = None
    priority: TaskPriority = TaskPriority.NORMAL
    note: Optional[str] = None
    raw_utterance: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2

    @property
    def is_minimal(self) -> bool:
        return self.schedule_window is None and self.deadline is None


class UpdateTaskIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: TaskAction
    target_query: TaskTargetQuery
    parameters: Optional[ActionParameters] = None
    raw_utterance: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)


class VoiceIntentResult(BaseModel):
    """All intents parsed from one utterance. Built once, never mutated."""

    model_config = ConfigDict(frozen=True)

    create_intents: List[CreateTaskIntent] = Field(default_factory=list)
    update_intents: List[UpdateTaskIntent] = Field(default_factory=list)
    raw_utterance: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)

    @property
    def has_intents(self) -> bool:
        return bool(self.create_intents) or bool(self.update_intents)

    @property
    def total_intent_count(self) -> int:
        return len(self.create_intents) + len(self.update_intents)

    @property
    def is_create_only(self) -> bool:
        return bool(self.create_intents) and not self.update_intents

    @property
    def is_update_only(self) -> bool:
        return not self.create_intents and bool(self.update_intents)

    @property
    def is_mixed(self) -> bool:
        return bool(self.create_intents) and bool(self.update_intents)

    @classmethod
    def empty(cls, utterance: str) -> "VoiceIntentResult":
        return cls(raw_utterance=utterance, confidence=0.0)


# --- capture & events -------------------------------------------------------


class CaptureResult(BaseModel):
    transcript: str = ""
    duration_seconds: float = Field(0.0, ge=0)


class EventLog(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: EventType
    task_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=datetime.now)
