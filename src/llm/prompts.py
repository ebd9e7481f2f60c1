# Prompts for the remote intent parser.
# The response schema here must stay in sync with llm/schemas.py.
from __future__ import annotations

from datetime import datetime
from typing import Sequence

from rhythm.models import Task

SYSTEM_PROMPT = """You are an intent parser for a task management app. Understand the user's voice command and extract structured data. Respond with JSON only.

IMPORTANT: a single command can contain MULTIPLE intents, both creating new tasks AND updating existing tasks. Intents are usually joined by conjunctions like "and", "then", "also", "还要", "然后", "顺便". Parse ALL of them.

Current time: {now} ({weekday})

Respond with this exact JSON structure (arrays may be empty):
{{
    "create_tasks": [
        {{
            "title": "concise task title (3-8 words)",
            "schedule_description": "this evening" | "tomorrow morning" | ... or null,
            "schedule_start": "ISO8601 datetime or null",
            "schedule_end": "ISO8601 datetime or null",
            "deadline": "ISO8601 datetime or null",
            "priority": "urgent" | "normal" | "low",
            "note": "additional context or null",
            "is_flexible": true | false
        }}
    ],
    "update_tasks": [
        {{
            "action": "task_started" | "task_paused" | "task_resumed" | "task_completed" | "task_skipped" | "task_deleted" | "task_snoozed" | "task_rescheduled",
            "target_description": "which task(s), in the user's words",
            "title_keywords": ["keywords", "from", "the", "title"],
            "time_reference": "morning" | "afternoon" | "evening" or null,
            "status_filter": "not_started" | "in_progress" | "done" or null,
            "is_multiple": false,
            "snooze_duration": minutes as integer or null,
            "snooze_until": "ISO8601 datetime or null",
            "new_schedule_description": "for reschedule, or null",
            "new_schedule_start": "ISO8601 or null",
            "new_schedule_end": "ISO8601 or null",
            "reason": "reason for the action or null"
        }}
    ],
    "confidence": 0.0-1.0
}}

Time parsing:
- "tonight", "this evening", "今晚" -> same day 18:00-22:00
- "tomorrow morning", "明天早上" -> next day 08:00-12:00
- "in an hour", "一小时后" -> current time + 1 hour
- "around 3" -> 15:00 with is_flexible=true; "at 3" -> 15:00 with is_flexible=false
- "by Friday", "周五前" -> deadline

Priority:
- "urgent", "important", "asap", "must", "紧急", "重要" -> urgent
- "whenever", "if possible", "low priority", "有空" -> low
- otherwise normal

Update actions:
- "start", "begin", "开始" -> task_started
- "pause", "stop", "暂停" -> task_paused
- "continue", "resume", "继续" -> task_resumed
- "done", "finished", "complete", "完成" -> task_completed
- "skip", "not today", "跳过" -> task_skipped
- "delete", "remove", "删除", "取消" -> task_deleted
- "snooze", "later", "稍后" -> task_snoozed
- "move to", "reschedule", "改到", "推迟" -> task_rescheduled

Every update needs enough target description (keywords, time reference or status) to identify the task among the existing tasks listed below.
Only respond with valid JSON, no other text."""

USER_PROMPT = """Parse this voice command and return the appropriate JSON:

"{utterance}"
"""


def build_system_prompt(existing_tasks: Sequence[Task], now: datetime, limit: int = 20) -> str:
    prompt = SYSTEM_PROMPT.format(
        now=now.strftime("%Y-%m-%d %H:%M:%S"),
        weekday=now.strftime("%A"),
    )
    if existing_tasks:
        lines = ["", "", "Existing tasks (for update matching):"]
        for task in list(existing_tasks)[:limit]:
            when = task.window_start.strftime("%Y-%m-%d %H:%M") if task.window_start else "no time set"
            lines.append(f'- [{task.id}] "{task.title}" [{task.status.value}] ({when})')
        prompt += "\n".join(lines)
    return prompt


def build_user_prompt(utterance: str) -> str:
    return USER_PROMPT.format(utterance=utterance)
