"""
Offline intent extraction.

Used whenever the remote language model is unavailable or returns something
unusable. Deterministic, never blocks, and always yields at least one intent.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from extraction.text import extract_keywords, extract_title, split_segments
from rhythm.config import EngineConfig
from rhythm.models import (
    CreateTaskIntent,
    Task,
    TaskAction,
    TaskPriority,
    TaskTargetQuery,
    UpdateTaskIntent,
    VoiceIntentResult,
)
from scheduling.time_windows import TimeWindowCalculator

logger = logging.getLogger(__name__)

# First match wins, so order matters.
ACTION_KEYWORDS: Tuple[Tuple[Tuple[str, ...], TaskAction], ...] = (
    (("done", "finished", "complete", "completed", "完成", "做完"), TaskAction.COMPLETE),
    (("start", "begin", "let's do", "开始"), TaskAction.START),
    (("pause", "stop", "暂停"), TaskAction.PAUSE),
    (("resume", "continue", "继续"), TaskAction.RESUME),
    (("skip", "not today", "跳过", "今天不做"), TaskAction.SKIP),
    (("delete", "remove", "cancel", "删除", "取消"), TaskAction.DELETE),
    (("snooze", "later", "remind me later", "稍后", "等会"), TaskAction.SNOOZE),
    (("reschedule", "move to", "改到", "推迟"), TaskAction.RESCHEDULE),
)

URGENT_MARKERS = ("urgent", "important", "asap", "must", "紧急", "重要")
LOW_MARKERS = ("whenever", "if possible", "low priority", "maybe", "有空", "可能的话")

DEFAULT_TITLE = "New task"


def _contains_phrase(text: str, phrase: str) -> bool:
    # ASCII phrases match on word boundaries; CJK phrases have no word breaks.
    if phrase.isascii():
        return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None
    return phrase in text


def detect_action(segment: str) -> Optional[Tuple[TaskAction, str]]:
    lowered = segment.lower()
    for keywords, action in ACTION_KEYWORDS:
        for keyword in keywords:
            if _contains_phrase(lowered, keyword):
                return action, keyword
    return None


def detect_priority(text: str) -> TaskPriority:
    lowered = text.lower()
    if any(_contains_phrase(lowered, m) for m in URGENT_MARKERS):
        return TaskPriority.URGENT
    if any(_contains_phrase(lowered, m) for m in LOW_MARKERS):
        return TaskPriority.LOW
    return TaskPriority.NORMAL


class FallbackIntentParser:
    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        calculator: Optional[TimeWindowCalculator] = None,
    ):
        self.config = config or EngineConfig()
        self.calculator = calculator or TimeWindowCalculator(self.config)

    def parse(
        self,
        utterance: str,
        existing_tasks: Sequence[Task] = (),
        reference: Optional[datetime] = None,
    ) -> VoiceIntentResult:
        reference = reference or datetime.now()
        creates: List[CreateTaskIntent] = []
        updates: List[UpdateTaskIntent] = []

        for segment in split_segments(utterance):
            detected = detect_action(segment)
            if detected is not None:
                action, keyword = detected
                updates.append(self._update_intent(segment, action, keyword))
                continue

            title = extract_title(segment)
            if len(title) >= 2:
                creates.append(self._create_intent(segment, title, reference))

        if not creates and not updates:
            title = extract_title(utterance) or DEFAULT_TITLE
            creates.append(self._create_intent(utterance, title, reference))

        logger.info(
            f"Fallback parse produced {len(creates)} create / {len(updates)} update intents"
        )
        return VoiceIntentResult(
            create_intents=creates,
            update_intents=updates,
            raw_utterance=utterance,
            confidence=self.config.fallback_confidence,
        )

    def _create_intent(self, segment: str, title: str, reference: datetime) -> CreateTaskIntent:
        return CreateTaskIntent(
            title=title,
            schedule_window=self.calculator.window_from_phrase(segment, reference),
            priority=detect_priority(segment),
            raw_utterance=segment,
            confidence=self.config.fallback_create_confidence,
        )

    def _update_intent(self, segment: str, action: TaskAction, keyword: str) -> UpdateTaskIntent:
        query = TaskTargetQuery(
            title_keywords=extract_keywords(segment, exclude=keyword.split()),
            is_multiple=False,
            raw_description=segment,
        )
        return UpdateTaskIntent(
            action=action,
            target_query=query,
            raw_utterance=segment,
            confidence=self.config.fallback_update_confidence,
        )
