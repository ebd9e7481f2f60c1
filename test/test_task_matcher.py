from datetime import datetime, timedelta

from matching.task_matcher import TaskMatcher, time_bucket
from rhythm.models import Task, TaskPriority, TaskStatus, TaskTargetQuery


def _tasks(now):
    return [
        Task(title="Reply to email", window_start=now.replace(hour=9)),
        Task(title="Email landlord", priority=TaskPriority.URGENT, window_start=now.replace(hour=19)),
        Task(title="Write report", status=TaskStatus.IN_PROGRESS, window_start=now.replace(hour=15)),
        Task(title="Walk dog"),
    ]


def test_no_filters_returns_all_in_order(now):
    tasks = _tasks(now)
    assert TaskMatcher().match(TaskTargetQuery(), tasks, now=now) == tasks


def test_keywords_any_case_insensitive(now):
    tasks = _tasks(now)
    out = TaskMatcher().match(TaskTargetQuery(title_keywords=["EMAIL", "dog"]), tasks, now=now)
    assert [t.title for t in out] == ["Reply to email", "Email landlord", "Walk dog"]


def test_filters_are_and_combined(now):
    tasks = _tasks(now)
    query = TaskTargetQuery(title_keywords=["email"], priority_filter=TaskPriority.URGENT)
    assert [t.title for t in TaskMatcher().match(query, tasks, now=now)] == ["Email landlord"]

    query = TaskTargetQuery(title_keywords=["report"], status_filter=TaskStatus.NOT_STARTED)
    assert TaskMatcher().match(query, tasks, now=now) == []


def test_time_of_day_buckets(now):
    tasks = _tasks(now)
    matcher = TaskMatcher()
    assert [t.title for t in matcher.match(TaskTargetQuery(time_reference="this morning"), tasks, now=now)] == [
        "Reply to email"
    ]
    assert [t.title for t in matcher.match(TaskTargetQuery(time_reference="afternoon"), tasks, now=now)] == [
        "Write report"
    ]
    assert [t.title for t in matcher.match(TaskTargetQuery(time_reference="tonight"), tasks, now=now)] == [
        "Email landlord"
    ]


def test_time_filter_only_looks_at_today(now):
    tomorrow_morning = Task(title="Standup", window_start=now.replace(hour=9) + timedelta(days=1))
    out = TaskMatcher().match(TaskTargetQuery(time_reference="morning"), [tomorrow_morning], now=now)
    assert out == []


def test_time_filter_uses_injected_clock(now):
    matcher = TaskMatcher(clock=lambda: now)
    task = Task(title="Standup", window_start=now.replace(hour=9))
    assert matcher.match(TaskTargetQuery(time_reference="morning"), [task]) == [task]


def test_unknown_time_reference_is_ignored(now):
    tasks = _tasks(now)
    assert TaskMatcher().match(TaskTargetQuery(time_reference="someday"), tasks, now=now) == tasks


def test_matching_is_deterministic(now):
    tasks = _tasks(now)
    query = TaskTargetQuery(title_keywords=["e"])
    matcher = TaskMatcher()
    assert matcher.match(query, tasks, now=now) == matcher.match(query, tasks, now=now)


def test_bucket_bounds():
    assert time_bucket("Morning") == (6, 12)
    assert time_bucket("evening") == (17, 23)
    assert time_bucket("noon") is None
