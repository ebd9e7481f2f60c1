"""
Multi-intent review flow.

One engine instance serves one session and processes one utterance at a time:

    idle -> parsing -> reviewing_summary | reviewing_create | reviewing_update
         | selecting_target -> committing -> completed | failed

Every public operation checks the current stage first and raises
InvalidStateError when the transition is not available from it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from extraction.fallback_parser import DEFAULT_TITLE
from extraction.intent_parser import IntentParser
from extraction.text import extract_title
from integration.event_log import EventLogService
from lifecycle.task_operations import TaskLifecycle
from matching.task_matcher import TaskMatcher
from rhythm.config import EngineConfig
from rhythm.errors import InvalidStateError, NoMatchError, SaveError, TaskTransitionError
from rhythm.models import (
    CaptureResult,
    CreateTaskIntent,
    EventType,
    ScheduleWindow,
    Task,
    TaskPriority,
    UpdateTaskIntent,
    VoiceIntentResult,
)
from storage.task_store import TaskStore

logger = logging.getLogger(__name__)


class FlowStage(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    PARSING = "parsing"
    REVIEWING_SUMMARY = "reviewing_summary"
    REVIEWING_CREATE = "reviewing_create"
    REVIEWING_UPDATE = "reviewing_update"
    SELECTING_TARGET = "selecting_target"
    CUSTOMIZING_TIME = "customizing_time"
    COMMITTING = "committing"
    COMPLETED = "completed"
    FAILED = "failed"


_REVIEW_STAGES = frozenset(
    {
        FlowStage.REVIEWING_SUMMARY,
        FlowStage.REVIEWING_CREATE,
        FlowStage.REVIEWING_UPDATE,
        FlowStage.SELECTING_TARGET,
        FlowStage.CUSTOMIZING_TIME,
    }
)
_SUBMIT_STAGES = (FlowStage.IDLE, FlowStage.COMPLETED, FlowStage.FAILED)


@dataclass(frozen=True)
class FlowState:
    stage: FlowStage = FlowStage.IDLE
    reason: Optional[str] = None  # failed only

    @classmethod
    def failed(cls, reason: str) -> "FlowState":
        return cls(FlowStage.FAILED, reason)

    @property
    def is_terminal(self) -> bool:
        return self.stage in (FlowStage.COMPLETED, FlowStage.FAILED)

    @property
    def is_reviewing(self) -> bool:
        return self.stage in _REVIEW_STAGES


@dataclass
class CreateDraft:
    """Editable copy of the create intent under review."""

    intent: CreateTaskIntent
    edited_title: Optional[str] = None
    priority: TaskPriority = TaskPriority.NORMAL
    window: Optional[ScheduleWindow] = None

    @classmethod
    def from_intent(cls, intent: CreateTaskIntent) -> "CreateDraft":
        return cls(intent=intent, priority=intent.priority, window=intent.schedule_window)

    @property
    def title(self) -> str:
        if self.edited_title is not None and self.edited_title.strip():
            return self.edited_title.strip()
        return self.intent.title


@dataclass
class FlowSession:
    """Everything the engine holds for the utterance being processed."""

    transcript: str = ""
    result: Optional[VoiceIntentResult] = None
    snapshot: List[Task] = field(default_factory=list)
    queue: List[Tuple[str, int]] = field(default_factory=list)
    position: int = 0
    draft: Optional[CreateDraft] = None
    matched: List[Task] = field(default_factory=list)
    selected: Optional[Task] = None
    created: List[Task] = field(default_factory=list)
    updated: List[Task] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    completion_message: Optional[str] = None

    @property
    def creates(self) -> List[CreateTaskIntent]:
        return list(self.result.create_intents) if self.result else []

    @property
    def updates(self) -> List[UpdateTaskIntent]:
        return list(self.result.update_intents) if self.result else []


def describe_target(intent: UpdateTaskIntent) -> str:
    query = intent.target_query
    if query.raw_description.strip():
        return query.raw_description.strip()
    if query.title_keywords:
        return " ".join(query.title_keywords)
    return intent.raw_utterance.strip()


def _count(n: int, verb: str) -> str:
    return f"{verb} {n} task{'s' if n > 1 else ''}"


class IntentFlowEngine:
    def __init__(
        self,
        parser: IntentParser,
        store: TaskStore,
        lifecycle: TaskLifecycle,
        matcher: Optional[TaskMatcher] = None,
        event_log: Optional[EventLogService] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.parser = parser
        self.store = store
        self.lifecycle = lifecycle
        self.config = config or EngineConfig()
        self.matcher = matcher or TaskMatcher(clock=clock)
        self.event_log = event_log
        self._clock = clock
        self._state = FlowState()
        self._session = FlowSession()

    # --- read side ------------------------------------------------------------

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def session(self) -> FlowSession:
        return self._session

    @property
    def created(self) -> List[Task]:
        return list(self._session.created)

    @property
    def updated(self) -> List[Task]:
        return list(self._session.updated)

    @property
    def errors(self) -> List[str]:
        return list(self._session.errors)

    @property
    def summary(self) -> str:
        """Short outcome text, e.g. "Created 1 task, Updated 1 task"."""
        s = self._session
        parts = []
        if s.created:
            parts.append(_count(len(s.created), "Created"))
        if s.updated:
            parts.append(_count(len(s.updated), "Updated"))
        text = ", ".join(parts)
        if s.errors:
            if text:
                return f"{text} ({len(s.errors)} failed: {'; '.join(s.errors)})"
            return "; ".join(s.errors)
        return text

    @property
    def completion_message(self) -> str:
        return self._session.completion_message or self.summary

    @property
    def current_intent_progress(self) -> Optional[Tuple[int, int]]:
        s = self._session
        if not s.queue or self._state.stage == FlowStage.REVIEWING_SUMMARY:
            return None
        return min(s.position + 1, len(s.queue)), len(s.queue)

    @property
    def intent_summary(self) -> List[str]:
        lines = []
        for intent in self._session.creates:
            line = f"Create: {intent.title}"
            if intent.schedule_window is not None:
                line += f" ({intent.schedule_window.display_description})"
            lines.append(line)
        for intent in self._session.updates:
            lines.append(f"{intent.action.display_name}: {describe_target(intent)}")
        return lines

    @property
    def current_create(self) -> Optional[CreateDraft]:
        return self._session.draft

    @property
    def current_update(self) -> Optional[UpdateTaskIntent]:
        item = self._current_item()
        if item is None or item[0] != "update":
            return None
        return self._session.updates[item[1]]

    @property
    def matched_tasks(self) -> List[Task]:
        return list(self._session.matched)

    @property
    def selected_task(self) -> Optional[Task]:
        return self._session.selected

    # --- capture --------------------------------------------------------------

    def start_capture(self) -> None:
        self._require(*_SUBMIT_STAGES)
        self._session = FlowSession()
        self._log(EventType.VOICE_INPUT_STARTED)
        self._set(FlowStage.CAPTURING)

    def cancel_capture(self, duration_seconds: float = 0.0) -> None:
        self._require(FlowStage.CAPTURING)
        self._log(EventType.VOICE_INPUT_CANCELLED, duration_seconds=duration_seconds)
        self._session = FlowSession()
        self._set(FlowStage.IDLE)

    def submit_capture(self, capture: CaptureResult) -> FlowState:
        self._require(FlowStage.CAPTURING)
        self._log(
            EventType.VOICE_INPUT_COMPLETED,
            duration_seconds=capture.duration_seconds,
            transcript_length=len(capture.transcript),
        )
        return self._process(capture.transcript)

    def submit_text(self, text: str) -> FlowState:
        self._require(*_SUBMIT_STAGES)
        self._session = FlowSession()
        return self._process(text)

    # --- review ---------------------------------------------------------------

    def start_review(self) -> FlowState:
        self._require(FlowStage.REVIEWING_SUMMARY)
        self._load(0)
        return self._state

    def confirm_all(self) -> FlowState:
        """Commit every pending intent: creates first, then updates, in parser order.

        Best-effort: a failing intent is recorded and the rest still run.
        """
        self._require(FlowStage.REVIEWING_SUMMARY)
        self._set(FlowStage.COMMITTING)
        s = self._session

        for intent in s.creates:
            self._commit_create(CreateDraft.from_intent(intent))

        for intent in s.updates:
            matches = self._match(intent)
            if not matches:
                s.errors.append(str(NoMatchError(describe_target(intent))))
            elif len(matches) == 1 or intent.target_query.is_multiple:
                for task in matches:
                    self._commit_update(task, intent)
            else:
                s.errors.append(
                    f"{len(matches)} tasks match '{describe_target(intent)}', review individually"
                )

        return self._finish()

    def edit_title(self, title: str) -> None:
        self._require(FlowStage.REVIEWING_CREATE)
        self._session.draft.edited_title = title

    def edit_priority(self, priority: TaskPriority) -> None:
        self._require(FlowStage.REVIEWING_CREATE)
        self._session.draft.priority = priority

    def open_time_customization(self) -> None:
        self._require(FlowStage.REVIEWING_CREATE)
        self._set(FlowStage.CUSTOMIZING_TIME)

    def set_custom_window(self, start: datetime, end: Optional[datetime] = None) -> None:
        self._require(FlowStage.CUSTOMIZING_TIME)
        if end is not None and end <= start:
            raise ValueError("window end must be after its start")
        self._session.draft.window = ScheduleWindow(start=start, end=end, label="Custom")
        self._set(FlowStage.REVIEWING_CREATE)

    def cancel_time_customization(self) -> None:
        self._require(FlowStage.CUSTOMIZING_TIME)
        self._set(FlowStage.REVIEWING_CREATE)

    # --- commit ---------------------------------------------------------------

    def advance(self) -> FlowState:
        """Commit the create under review and move to the next intent."""
        self._require(FlowStage.REVIEWING_CREATE)
        draft = self._session.draft
        self._set(FlowStage.COMMITTING)
        task = self._commit_create(draft)
        if task is not None and self._is_single_intent():
            self._session.completion_message = f"Created: {task.title}"
        return self._next()

    def select_target(self, task_id: str) -> None:
        self._require(FlowStage.SELECTING_TARGET)
        for task in self._session.matched:
            if task.id == task_id:
                self._session.selected = task
                self._set(FlowStage.REVIEWING_UPDATE)
                return
        raise ValueError(f"Task {task_id} is not one of the matched tasks")

    def confirm_update(self) -> FlowState:
        self._require(FlowStage.REVIEWING_UPDATE)
        intent = self.current_update
        task = self._session.selected
        self._set(FlowStage.COMMITTING)
        if self._commit_update(task, intent) and self._is_single_intent():
            self._session.completion_message = intent.action.confirmation_message
        return self._next()

    def apply_to_all_matched(self) -> FlowState:
        self._require(FlowStage.SELECTING_TARGET)
        intent = self.current_update
        matched = list(self._session.matched)
        self._set(FlowStage.COMMITTING)
        for task in matched:
            self._commit_update(task, intent)
        return self._next()

    def reset(self) -> None:
        """Back to idle from any stage. Work already committed stays committed."""
        self._session = FlowSession()
        self._set(FlowStage.IDLE)

    # --- internals ------------------------------------------------------------

    def _process(self, transcript: str) -> FlowState:
        if not transcript.strip():
            self._set(FlowStage.IDLE)
            return self._state

        s = self._session
        s.transcript = transcript
        self._set(FlowStage.PARSING)

        try:
            s.snapshot = self.store.fetch_open_tasks(limit=self.config.context_task_limit)
        except Exception as e:
            logger.warning(f"Could not fetch open tasks, parsing without context: {e}")
            s.snapshot = []

        result = self.parser.parse(transcript, s.snapshot, reference=self._clock())
        if not result.has_intents:
            fallback = CreateTaskIntent(
                title=extract_title(transcript) or DEFAULT_TITLE,
                raw_utterance=transcript,
                confidence=self.config.fallback_create_confidence,
            )
            result = VoiceIntentResult(
                create_intents=[fallback],
                raw_utterance=transcript,
                confidence=self.config.fallback_create_confidence,
            )

        s.result = result
        s.queue = [("create", i) for i in range(len(result.create_intents))]
        s.queue += [("update", i) for i in range(len(result.update_intents))]
        logger.info(
            f"Parsed {len(result.create_intents)} create / {len(result.update_intents)} update "
            f"intents (confidence {result.confidence:.2f})"
        )

        if result.total_intent_count == 1:
            self._load(0)
        else:
            self._set(FlowStage.REVIEWING_SUMMARY)
        return self._state

    def _load(self, position: int) -> None:
        s = self._session
        s.position = position
        s.draft = None
        s.matched = []
        s.selected = None

        kind, index = s.queue[position]
        if kind == "create":
            s.draft = CreateDraft.from_intent(s.creates[index])
            self._set(FlowStage.REVIEWING_CREATE)
            return

        intent = s.updates[index]
        s.matched = self._match(intent)
        if not s.matched:
            message = str(NoMatchError(describe_target(intent)))
            s.errors.append(message)
            logger.info(f"No task matches {describe_target(intent)!r}")
            self._state = FlowState.failed(message)
        elif len(s.matched) == 1:
            s.selected = s.matched[0]
            self._set(FlowStage.REVIEWING_UPDATE)
        else:
            self._set(FlowStage.SELECTING_TARGET)

    def _next(self) -> FlowState:
        s = self._session
        if s.position + 1 < len(s.queue):
            self._load(s.position + 1)
            return self._state
        return self._finish()

    def _finish(self) -> FlowState:
        s = self._session
        if s.errors and not s.created and not s.updated:
            self._state = FlowState.failed(self.summary)
        else:
            self._set(FlowStage.COMPLETED)
        logger.info(f"Flow finished ({self._state.stage.value}): {self.summary}")
        return self._state

    def _commit_create(self, draft: CreateDraft) -> Optional[Task]:
        try:
            task = self.lifecycle.create_task(
                draft.title,
                window=draft.window,
                deadline=draft.intent.deadline,
                priority=draft.priority,
                note=draft.intent.note,
                utterance_text=self._session.transcript,
            )
        except SaveError as e:
            logger.warning(f"Create {draft.title!r} failed: {e}")
            self._session.errors.append(str(e))
            return None
        except Exception as e:
            logger.exception(f"Unexpected error creating {draft.title!r}: {e}")
            self._session.errors.append(f"Couldn't save \"{draft.title}\": {e}")
            return None
        self._session.created.append(task)
        return task

    def _commit_update(self, task: Task, intent: UpdateTaskIntent) -> bool:
        try:
            self.lifecycle.apply_update(task, intent.action, intent.parameters)
        except (SaveError, TaskTransitionError) as e:
            logger.warning(f"{intent.action.display_name} on {task.id} failed: {e}")
            self._session.errors.append(str(e))
            return False
        except Exception as e:
            logger.exception(f"Unexpected error applying {intent.action.value} to {task.id}: {e}")
            self._session.errors.append(f"Couldn't update \"{task.title}\": {e}")
            return False
        self._session.updated.append(task)
        return True

    def _match(self, intent: UpdateTaskIntent) -> List[Task]:
        try:
            return self.matcher.match(intent.target_query, self._session.snapshot, now=self._clock())
        except Exception as e:
            logger.warning(f"Matching {describe_target(intent)!r} failed, treating as no match: {e}")
            return []

    def _current_item(self) -> Optional[Tuple[str, int]]:
        s = self._session
        if not s.queue or s.position >= len(s.queue):
            return None
        return s.queue[s.position]

    def _is_single_intent(self) -> bool:
        return len(self._session.queue) == 1

    def _require(self, *stages: FlowStage) -> None:
        if self._state.stage not in stages:
            allowed = ", ".join(s.value for s in stages)
            raise InvalidStateError(
                f"Not available while {self._state.stage.value} (needs one of: {allowed})"
            )

    def _set(self, stage: FlowStage) -> None:
        self._state = FlowState(stage)

    def _log(self, event_type: EventType, **metadata) -> None:
        if self.event_log is None:
            return
        try:
            self.event_log.log(event_type, metadata=metadata)
        except Exception as e:
            logger.warning(f"Failed to log {event_type.value}: {e}")
