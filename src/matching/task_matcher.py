from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, List, Optional

from rhythm.models import Task, TaskTargetQuery

# (start hour, end hour) on the calendar day of "now"
TIME_OF_DAY_BUCKETS = {
    "morning": (6, 12),
    "afternoon": (12, 17),
    "evening": (17, 23),
}


def time_bucket(reference: str) -> Optional[tuple[int, int]]:
    ref = reference.lower()
    if "morning" in ref:
        return TIME_OF_DAY_BUCKETS["morning"]
    if "afternoon" in ref:
        return TIME_OF_DAY_BUCKETS["afternoon"]
    if "evening" in ref or "tonight" in ref:
        return TIME_OF_DAY_BUCKETS["evening"]
    return None


class TaskMatcher:
    """Resolves which task(s) an update intent targets.

    Filters are optional and AND-combined; candidate order is preserved.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock

    def match(
        self,
        query: TaskTargetQuery,
        candidates: Iterable[Task],
        now: Optional[datetime] = None,
    ) -> List[Task]:
        results = list(candidates)

        if query.status_filter is not None:
            results = [t for t in results if t.status == query.status_filter]

        if query.priority_filter is not None:
            results = [t for t in results if t.priority == query.priority_filter]

        keywords = [k.lower() for k in (query.title_keywords or []) if k and k.strip()]
        if keywords:
            results = [t for t in results if any(k in t.title.lower() for k in keywords)]

        if query.time_reference:
            bucket = time_bucket(query.time_reference)
            if bucket is not None:
                results = self._filter_time_of_day(results, bucket, now or self._clock())

        return results

    @staticmethod
    def _filter_time_of_day(tasks: List[Task], bucket: tuple[int, int], now: datetime) -> List[Task]:
        start_hour, end_hour = bucket
        lower = now.replace(hour=start_hour, minute=0, second=0, microsecond=0)
        upper = now.replace(hour=end_hour, minute=0, second=0, microsecond=0)
        return [
            t for t in tasks
            if t.window_start is not None and lower <= t.window_start < upper
        ]
