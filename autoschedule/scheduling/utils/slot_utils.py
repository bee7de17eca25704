"""
Helpers for comparing and grouping blocks and events.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Tuple, Union

from ..core.time_slot import TimeBlock
from ...schemas import TaskCalendarEvent

BlockKey = Tuple[int, datetime, datetime]


def normalize_time(value: Union[datetime, str]) -> datetime:
    """
    Canonical form used for identity comparisons: sub-second precision dropped,
    ISO strings parsed, aware datetimes converted to naive UTC.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0)


def block_key(task_id: int, start: Union[datetime, str], end: Union[datetime, str]) -> BlockKey:
    return (task_id, normalize_time(start), normalize_time(end))


def event_key(event: TaskCalendarEvent) -> BlockKey:
    return block_key(event.linked_task_id, event.start_time, event.end_time)


def group_events_by_task(events: Iterable) -> Dict[int, List[TaskCalendarEvent]]:
    """Task-linked events keyed by linked_task_id; plain events are left out."""
    grouped: Dict[int, List[TaskCalendarEvent]] = defaultdict(list)
    for event in events:
        if isinstance(event, TaskCalendarEvent):
            grouped[event.linked_task_id].append(event)
    return grouped


def event_to_block(event) -> TimeBlock:
    task_id = event.linked_task_id if isinstance(event, TaskCalendarEvent) else None
    return TimeBlock(event.start_time, event.end_time, task_id)
