#tests/test_diff_apply.py
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from autoschedule.exceptions import PartialBatchFailure
from autoschedule.schemas import BatchCreateResult, BatchDeleteResult
from autoschedule.scheduling.algorithms.diff import diff_schedule, is_same_schedule
from autoschedule.scheduling.core.scheduler import plan_schedule
from autoschedule.scheduling.core.time_slot import TimeBlock
from autoschedule.scheduling.utils.slot_utils import block_key
from autoschedule.services.schedule_applier import apply_schedule_diff

from conftest import NOW, at, day, make_plain_event, make_task, make_task_event


# ================================
# DIFF
# ================================

def test_identical_schedule_needs_no_calls():
    current = [make_task_event(1, at(0, 9), at(0, 10))]
    desired = [TimeBlock(at(0, 9), at(0, 10), 1)]
    assert is_same_schedule(current, desired)

    event_service = MagicMock()
    report = apply_schedule_diff(diff_schedule(desired, current), event_service, user_id=1)
    assert not report.degraded
    event_service.create_calendar_events_batch.assert_not_called()
    event_service.delete_calendar_events_batch.assert_not_called()


def test_diff_creates_missing_and_deletes_stale():
    current = [
        make_task_event(1, at(0, 9), at(0, 10), event_id=1),
        make_task_event(1, at(0, 13), at(0, 14), event_id=2),
    ]
    desired = [TimeBlock(at(0, 9), at(0, 10), 1), TimeBlock(at(0, 10), at(0, 11), 1)]
    diff = diff_schedule(desired, current)

    assert [(b.start, b.task_id) for b in diff.to_create] == [(at(0, 10), 1)]
    assert diff.delete_ids() == [2]


def test_same_interval_for_another_task_is_not_a_match():
    current = [make_task_event(2, at(0, 9), at(0, 10), event_id=1)]
    diff = diff_schedule([TimeBlock(at(0, 9), at(0, 10), 1)], current)
    assert len(diff.to_create) == 1
    assert diff.delete_ids() == [1]


def test_duplicates_are_matched_one_to_one():
    current = [
        make_task_event(1, at(0, 9), at(0, 10), event_id=1),
        make_task_event(1, at(0, 9), at(0, 10), event_id=2),
    ]
    diff = diff_schedule([TimeBlock(at(0, 9), at(0, 10), 1)], current)
    assert diff.to_create == []
    assert len(diff.to_delete) == 1


def test_completed_and_plain_events_are_never_touched():
    current = [
        make_task_event(1, at(0, 9), at(0, 10), event_id=1, completed_at=NOW),
        make_plain_event(at(0, 11), at(0, 12), event_id=2),
    ]
    diff = diff_schedule([], current)
    assert diff.is_empty


def test_microseconds_do_not_break_identity():
    current = [make_task_event(1, at(0, 9).replace(microsecond=431), at(0, 10).replace(microsecond=7))]
    assert is_same_schedule(current, [TimeBlock(at(0, 9), at(0, 10), 1)])


def test_iso_strings_and_offsets_normalize_to_same_key():
    plus_two = timezone(timedelta(hours=2))
    aware_start = datetime(2026, 3, 2, 11, 0, tzinfo=plus_two)
    aware_end = datetime(2026, 3, 2, 12, 0, tzinfo=plus_two)
    assert block_key(1, "2026-03-02T09:00:00Z", "2026-03-02T10:00:00.250Z") == block_key(1, aware_start, aware_end)


def test_second_diff_after_apply_is_empty(nine_to_five):
    tasks = [make_task(id=1, planned_duration_minutes=120, due_date=day(2)), make_task(id=2, due_date=day(1))]
    stale = [make_task_event(1, at(1, 15), at(1, 16), event_id=40)]
    plan = plan_schedule(tasks, stale, {1: nine_to_five, 2: nine_to_five}, now=NOW)
    diff = diff_schedule(plan.desired_blocks(), stale)

    # What the calendar looks like once the diff is applied
    applied = [
        make_task_event(b.task_id, b.start, b.end, event_id=100 + i)
        for i, b in enumerate(diff.to_create)
    ]
    replanned = plan_schedule(tasks, applied, {1: nine_to_five, 2: nine_to_five}, now=NOW)
    assert diff_schedule(replanned.desired_blocks(), applied).is_empty


# ================================
# APPLY
# ================================

def _diff_with_one_create_and_one_delete():
    current = [make_task_event(1, at(0, 14), at(0, 15), event_id=9)]
    return diff_schedule([TimeBlock(at(0, 9), at(0, 10), 1)], current)


def test_apply_creates_then_deletes():
    event_service = MagicMock()
    event_service.create_calendar_events_batch.return_value = [BatchCreateResult(success=True, index=0)]
    event_service.delete_calendar_events_batch.return_value = [BatchDeleteResult(success=True, id=9)]

    report = apply_schedule_diff(_diff_with_one_create_and_one_delete(), event_service, 1, {1: "Write report"})

    events_in = event_service.create_calendar_events_batch.call_args.args[0]
    assert events_in[0].title == "Write report"
    assert events_in[0].linked_task_id == 1
    assert event_service.create_calendar_events_batch.call_args.kwargs["exclude_event_ids"] == [9]
    event_service.delete_calendar_events_batch.assert_called_once_with([9])
    assert len(report.created) == 1 and len(report.deleted) == 1
    assert not report.degraded
    report.raise_for_failures()


def test_failed_create_skips_deletes():
    event_service = MagicMock()
    event_service.create_calendar_events_batch.return_value = [
        BatchCreateResult(success=False, index=0, error="overlap"),
    ]

    report = apply_schedule_diff(_diff_with_one_create_and_one_delete(), event_service, 1)

    event_service.delete_calendar_events_batch.assert_not_called()
    assert report.deletes_skipped
    assert report.degraded
    with pytest.raises(PartialBatchFailure) as excinfo:
        report.raise_for_failures()
    assert excinfo.value.failed_creates == 1


def test_each_delete_failure_is_reported():
    event_service = MagicMock()
    event_service.create_calendar_events_batch.return_value = [BatchCreateResult(success=True, index=0)]
    event_service.delete_calendar_events_batch.return_value = [BatchDeleteResult(success=False, id=9, error="gone")]

    report = apply_schedule_diff(_diff_with_one_create_and_one_delete(), event_service, 1)

    assert [r.id for r in report.failed_deletes] == [9]
    assert report.degraded
