"""
Greedy slot allocation: turns "task needs N minutes" into concrete time blocks.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, date, time, timedelta
from typing import Iterable, List, Optional

from ..core.constants import START_ROUNDING_MINUTES, WEEKEND_DAYS
from ..core.time_slot import TimeBlock, OccupiedIntervals
from ...schemas import SchedulingConfig, TaskCalendarEvent, WorkingHours


@dataclass
class AllocationResult:
    blocks: List[TimeBlock] = field(default_factory=list)
    violations: List[TimeBlock] = field(default_factory=list)


# ================================
# TIME HELPERS
# ================================

def round_to_next_quarter_hour(moment: datetime) -> datetime:
    """Round up to the next 15-minute boundary; a time already on a boundary moves a full step."""
    remainder = moment.minute % START_ROUNDING_MINUTES
    minutes_to_add = START_ROUNDING_MINUTES - remainder
    return moment.replace(second=0, microsecond=0) + timedelta(minutes=minutes_to_add)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def working_day_bounds(day: date, working_hours: WorkingHours) -> tuple[datetime, datetime]:
    return (
        datetime.combine(day, time(working_hours.start_hour)),
        datetime.combine(day, time(working_hours.end_hour)),
    )


def resolve_deadline(task, config: SchedulingConfig, now: datetime) -> datetime:
    """Due date at end of day, or the default horizon for tasks without one."""
    if task.due_date:
        return end_of_day(task.due_date)
    return end_of_day(now.date() + timedelta(days=config.default_horizon_days))


def earliest_start(now: datetime, working_hours: WorkingHours, start_from: Optional[datetime] = None) -> datetime:
    """Latest of: now rounded up, the caller's cursor, and today's working-hours start."""
    day_start, _ = working_day_bounds(now.date(), working_hours)
    candidates = [round_to_next_quarter_hour(now), day_start]
    if start_from is not None:
        candidates.append(start_from)
    return max(candidates)


# ================================
# DURATION CALCULATIONS
# ================================

def calculate_remaining_minutes(task, existing_task_events: Iterable = ()) -> int:
    """
    Minutes still to place for a task: planned work minus logged work minus the
    duration of the task's non-completed linked events that already cover it.
    """
    scheduled_minutes = 0.0
    for event in existing_task_events:
        if not isinstance(event, TaskCalendarEvent):
            continue
        if event.linked_task_id != task.id or event.is_completed:
            continue
        scheduled_minutes += (event.end_time - event.start_time).total_seconds() / 60

    logged = min(task.actual_duration_minutes or 0, task.planned_duration_minutes or 0)
    remaining = (task.planned_duration_minutes or 0) - logged - scheduled_minutes
    return max(0, math.ceil(remaining))


def calculate_required_blocks(remaining_minutes: int, config: SchedulingConfig) -> int:
    if remaining_minutes <= 0:
        return 0
    return math.ceil(remaining_minutes / config.block_duration_minutes)


def check_deadline_violations(blocks: List[TimeBlock], task) -> List[TimeBlock]:
    """Blocks that start after the task's due date. Tasks without a due date never violate."""
    if not task.due_date:
        return []
    deadline = end_of_day(task.due_date)
    return [block for block in blocks if block.start > deadline]


# ================================
# CORE ALLOCATION
# ================================

def allocate(
    task,
    remaining_minutes: int,
    working_hours: WorkingHours,
    deadline: datetime,
    occupied: OccupiedIntervals,
    start_from: Optional[datetime] = None,
    config: Optional[SchedulingConfig] = None,
    now: Optional[datetime] = None,
) -> AllocationResult:
    """
    Place ceil(remaining / block) blocks for a task, scanning forward in block-sized steps
    inside working hours and skipping anything in `occupied`. Does not modify `occupied`.
    """
    config = config or SchedulingConfig()
    now = now or datetime.now()

    required = calculate_required_blocks(remaining_minutes, config)
    if required == 0:
        return AllocationResult()

    step = timedelta(minutes=config.block_duration_minutes)
    cursor = earliest_start(now, working_hours, start_from)

    # Overdue tasks still get a day's worth of scanning past the cursor
    scan_limit = deadline
    if scan_limit < cursor:
        scan_limit = end_of_day(cursor.date() + timedelta(days=1))

    blocks: List[TimeBlock] = []
    while len(blocks) < required:
        if cursor > scan_limit:
            break

        day_start, day_end = working_day_bounds(cursor.date(), working_hours)
        skip_day = config.skip_weekends and cursor.weekday() in WEEKEND_DAYS
        if skip_day or cursor + step > day_end:
            next_day = cursor.date() + timedelta(days=1)
            cursor, _ = working_day_bounds(next_day, working_hours)
            continue

        if cursor < day_start:
            cursor = day_start
            continue

        candidate_end = cursor + step
        if occupied.is_free(cursor, candidate_end):
            blocks.append(TimeBlock(cursor, candidate_end, task.id))
        cursor = candidate_end

    return AllocationResult(blocks=blocks, violations=check_deadline_violations(blocks, task))


def prepare_task_events(
    task,
    existing_task_events: Iterable,
    working_hours: WorkingHours,
    occupied: Optional[OccupiedIntervals] = None,
    start_from: Optional[datetime] = None,
    config: Optional[SchedulingConfig] = None,
    now: Optional[datetime] = None,
) -> AllocationResult:
    """Remaining minutes, deadline and allocation for a single task."""
    config = config or SchedulingConfig()
    now = now or datetime.now()
    remaining = calculate_remaining_minutes(task, existing_task_events)
    deadline = resolve_deadline(task, config, now)
    return allocate(
        task,
        remaining,
        working_hours,
        deadline,
        occupied if occupied is not None else OccupiedIntervals(),
        start_from=start_from,
        config=config,
        now=now,
    )
