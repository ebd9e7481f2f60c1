from datetime import datetime, timedelta

import pytest

from rhythm.models import (
    FIFTEEN_MINUTES,
    STANDARD_OPTIONS,
    TONIGHT,
    CreateTaskIntent,
    ScheduleWindow,
    SnoozeKind,
    SnoozeOption,
    Task,
    TaskAction,
    TaskStatus,
    TaskTargetQuery,
    UpdateTaskIntent,
    VoiceIntentResult,
)


def test_task_empty_title():
    with pytest.raises(Exception):
        Task(title="   ")


def test_task_defaults():
    task = Task(title="  Water plants ")
    assert task.title == "Water plants"
    assert task.status == TaskStatus.NOT_STARTED
    assert task.snooze_count == 0
    assert task.is_open
    assert not task.is_paused
    assert task.window_duration is None


def test_task_paused_means_in_progress_with_pause_time():
    task = Task(title="Read", status=TaskStatus.IN_PROGRESS, paused_at=datetime(2026, 3, 10, 9))
    assert task.is_paused
    assert not Task(title="Read", paused_at=datetime(2026, 3, 10, 9)).is_paused


def test_create_intent_title_required():
    with pytest.raises(Exception):
        CreateTaskIntent(title="")


def test_create_intent_confidence_bounds():
    with pytest.raises(Exception):
        CreateTaskIntent(title="Call mom", confidence=1.5)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("task_completed", TaskAction.COMPLETE),
        ("complete", TaskAction.COMPLETE),
        ("completed", TaskAction.COMPLETE),
        ("SNOOZE", TaskAction.SNOOZE),
        ("task_rescheduled", TaskAction.RESCHEDULE),
        ("fly", None),
        ("", None),
    ],
)
def test_action_from_value(raw, expected):
    assert TaskAction.from_value(raw) == expected


def test_action_display_copy():
    assert TaskAction.START.display_name == "Start"
    assert TaskAction.SKIP.past_tense == "skipped"
    assert TaskAction.COMPLETE.confirmation_message == "Nice work!"


def test_snooze_option_ids():
    assert FIFTEEN_MINUTES.id == "15_min"
    assert TONIGHT.id == "tonight"
    assert SnoozeOption.custom(45).id == "custom_45"
    assert SnoozeOption.from_id("custom_45") == SnoozeOption.custom(45)
    assert SnoozeOption.from_id("1_hour").offset == timedelta(hours=1)
    assert TONIGHT.offset is None


def test_snooze_option_rejects_bad_values():
    with pytest.raises(ValueError):
        SnoozeOption.custom(0)
    with pytest.raises(ValueError):
        SnoozeOption(SnoozeKind.TONIGHT, 5)
    with pytest.raises(ValueError):
        SnoozeOption.from_id("next_week")


def test_standard_options_have_labels():
    assert [o.id for o in STANDARD_OPTIONS] == [
        "15_min", "30_min", "1_hour", "2_hours", "tonight", "tomorrow",
    ]
    assert all(o.display_name and o.gentle_label for o in STANDARD_OPTIONS)


def test_schedule_window_description():
    window = ScheduleWindow(start=datetime(2026, 3, 10, 19, 0), label="This evening", is_flexible=True)
    assert window.display_description.endswith("at 7:00 PM")
    assert ScheduleWindow(label="Someday").display_description == "Someday"


def test_voice_intent_result_predicates():
    create = CreateTaskIntent(title="Call mom")
    update = UpdateTaskIntent(action=TaskAction.COMPLETE, target_query=TaskTargetQuery())

    mixed = VoiceIntentResult(create_intents=[create], update_intents=[update])
    assert mixed.has_intents and mixed.is_mixed
    assert mixed.total_intent_count == 2
    assert not mixed.is_create_only and not mixed.is_update_only

    assert VoiceIntentResult(create_intents=[create]).is_create_only
    assert VoiceIntentResult(update_intents=[update]).is_update_only

    empty = VoiceIntentResult.empty("hmm")
    assert not empty.has_intents
    assert empty.total_intent_count == 0


def test_voice_intent_result_is_frozen():
    result = VoiceIntentResult(raw_utterance="x")
    with pytest.raises(Exception):
        result.raw_utterance = "y"
