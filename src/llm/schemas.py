from __future__ import annotations
from datetime import datetime, timedelta
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from extraction.fallback_parser import detect_action
from extraction.text import extract_title, split_segments
from rhythm.models import (
    ActionParameters,
    CreateTaskIntent,
    ScheduleWindow,
    TaskAction,
    TaskPriority,
    TaskStatus,
    TaskTargetQuery,
    UpdateTaskIntent,
    VoiceIntentResult,
)


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Lenient ISO-8601 parsing; unparseable values are dropped, not fatal."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        # the engine works in naive local time
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class LLMCreateTaskData(BaseModel):
    title: Optional[str] = None
    schedule_description: Optional[str] = None
    schedule_start: Optional[str] = None
    schedule_end: Optional[str] = None
    deadline: Optional[str] = None
    priority: Optional[str] = None
    note: Optional[str] = None
    is_flexible: Optional[bool] = None


class LLMUpdateTaskData(BaseModel):
    action: str
    target_description: str = ""
    title_keywords: Optional[List[str]] = None
    time_reference: Optional[str] = None
    status_filter: Optional[str] = None
    priority_filter: Optional[str] = None
    is_multiple: Optional[bool] = None
    snooze_duration: Optional[int] = Field(default=None, ge=0)  # minutes
    snooze_until: Optional[str] = None
    new_schedule_description: Optional[str] = None
    new_schedule_start: Optional[str] = None
    new_schedule_end: Optional[str] = None
    reason: Optional[str] = None


class LLMIntentResponse(BaseModel):
    create_tasks: List[LLMCreateTaskData] = Field(default_factory=list)
    update_tasks: List[LLMUpdateTaskData] = Field(default_factory=list)
    confidence: float

    @field_validator("create_tasks", "update_tasks", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        return [] if v is None else v

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return min(max(v, 0.0), 1.0)

    def to_voice_intent_result(self, raw_utterance: str) -> VoiceIntentResult:
        # untitled creates borrow a title from their own clause of the utterance
        clauses = [s for s in split_segments(raw_utterance) if detect_action(s) is None]
        creates = [
            self._to_create(d, raw_utterance, clauses[i] if i < len(clauses) else raw_utterance)
            for i, d in enumerate(self.create_tasks)
        ]
        updates = [u for u in (self._to_update(d, raw_utterance) for d in self.update_tasks) if u]
        return VoiceIntentResult(
            create_intents=creates,
            update_intents=updates,
            raw_utterance=raw_utterance,
            confidence=self.confidence,
        )

    def _to_create(
        self, data: LLMCreateTaskData, raw_utterance: str, clause: str
    ) -> CreateTaskIntent:
        window = None
        if data.schedule_description or data.schedule_start:
            window = ScheduleWindow(
                start=parse_iso(data.schedule_start),
                end=parse_iso(data.schedule_end),
                label=data.schedule_description or "",
                is_flexible=bool(data.is_flexible),
            )

        title = (data.title or "").strip() or extract_title(clause) or "New task"
        try:
            priority = TaskPriority((data.priority or "normal").lower())
        except ValueError:
            priority = TaskPriority.NORMAL

        return CreateTaskIntent(
            title=title,
            schedule_window=window,
            deadline=parse_iso(data.deadline),
            priority=priority,
            note=data.note,
            raw_utterance=raw_utterance,
            confidence=self.confidence,
        )

    def _to_update(self, data: LLMUpdateTaskData, raw_utterance: str) -> Optional[UpdateTaskIntent]:
        action = TaskAction.from_value(data.action)
        if action is None:
            return None

        query = TaskTargetQuery(
            title_keywords=data.title_keywords,
            time_reference=data.time_reference,
            status_filter=_enum_or_none(TaskStatus, data.status_filter),
            priority_filter=_enum_or_none(TaskPriority, data.priority_filter),
            is_multiple=bool(data.is_multiple),
            raw_description=data.target_description or raw_utterance,
        )

        parameters = None
        if action in (TaskAction.SNOOZE, TaskAction.RESCHEDULE):
            new_schedule = None
            if data.new_schedule_description or data.new_schedule_start:
                new_schedule = ScheduleWindow(
                    start=parse_iso(data.new_schedule_start),
                    end=parse_iso(data.new_schedule_end),
                    label=data.new_schedule_description or "",
                    is_flexible=False,
                )
            parameters = ActionParameters(
                snooze_duration=(
                    timedelta(minutes=data.snooze_duration) if data.snooze_duration else None
                ),
                snooze_until=parse_iso(data.snooze_until),
                new_schedule=new_schedule,
                reason=data.reason,
            )

        return UpdateTaskIntent(
            action=action,
            target_query=query,
            parameters=parameters,
            raw_utterance=raw_utterance,
            confidence=self.confidence,
        )


def _enum_or_none(enum_cls, value: Optional[str]):
    if not value:
        return None
    try:
        return enum_cls(value.lower())
    except ValueError:
        return None
