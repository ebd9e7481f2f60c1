"""
Time window calculations for snooze presets and relative time phrases.

Every function takes the reference instant from the caller; nothing in this
module reads the clock.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from rhythm.config import EngineConfig
from rhythm.models import ScheduleWindow, SnoozeKind, SnoozeOption


def _at_hour(day: datetime, hour: int) -> datetime:
    return day.replace(hour=hour, minute=0, second=0, microsecond=0)


class TimeWindowCalculator:
    # Ordered: longer phrases first so "tomorrow morning" wins over "tomorrow".
    EVENING_PHRASES = ("tonight", "this evening", "今晚", "今天晚上")
    TOMORROW_MORNING_PHRASES = ("tomorrow morning", "明天早上", "明早")
    TOMORROW_PHRASES = ("tomorrow", "明天")
    AFTERNOON_PHRASES = ("this afternoon", "下午")
    LATER_PHRASES = ("later", "soon", "稍后", "等会")

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def resolve(self, option: SnoozeOption, reference: datetime) -> Optional[datetime]:
        """Map a snooze option to a concrete instant.

        Returns None for "tonight" when 19:00 today is not strictly after the
        reference; there is no rollover to the next day, the caller must pick
        another option.
        """
        offset = option.offset
        if offset is not None:
            return reference + offset

        if option.kind is SnoozeKind.TONIGHT:
            tonight = _at_hour(reference, self.config.tonight_hour)
            if tonight > reference:
                return tonight
            return None

        if option.kind is SnoozeKind.TOMORROW:
            return _at_hour(reference + timedelta(days=1), self.config.tomorrow_hour)

        raise ValueError(f"Unsupported snooze option: {option!r}")

    def window_from_phrase(self, text: str, reference: datetime) -> Optional[ScheduleWindow]:
        """Best-effort window for a free-text segment, used by the offline parser."""
        lowered = text.lower()
        cfg = self.config

        if any(p in lowered for p in self.EVENING_PHRASES):
            return self._same_day_window(reference, cfg.evening_window, "This evening")

        if any(p in lowered for p in self.TOMORROW_MORNING_PHRASES):
            tomorrow = reference + timedelta(days=1)
            return self._same_day_window(tomorrow, cfg.tomorrow_morning_window, "Tomorrow morning")

        if any(p in lowered for p in self.TOMORROW_PHRASES):
            start = _at_hour(reference + timedelta(days=1), cfg.tomorrow_hour)
            return ScheduleWindow(start=start, end=None, label="Tomorrow", is_flexible=True)

        if any(p in lowered for p in self.AFTERNOON_PHRASES):
            return self._same_day_window(reference, cfg.afternoon_window, "This afternoon")

        if any(p in lowered for p in self.LATER_PHRASES):
            start = reference + timedelta(minutes=cfg.later_offset_minutes)
            return ScheduleWindow(start=start, end=None, label="Later", is_flexible=True)

        return None

    @staticmethod
    def _same_day_window(day: datetime, hours: tuple[int, int], label: str) -> ScheduleWindow:
        start_hour, end_hour = hours
        return ScheduleWindow(
            start=_at_hour(day, start_hour),
            end=_at_hour(day, end_hour),
            label=label,
            is_flexible=True,
        )
