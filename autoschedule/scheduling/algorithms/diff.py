"""
Desired-vs-current comparison for task-linked calendar events.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from ..core.time_slot import TimeBlock
from ..utils.slot_utils import BlockKey, block_key, event_key
from ...schemas import TaskCalendarEvent


@dataclass
class ScheduleDiff:
    to_create: List[TimeBlock] = field(default_factory=list)
    to_delete: List[TaskCalendarEvent] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_create and not self.to_delete

    def delete_ids(self) -> List[int]:
        return [event.id for event in self.to_delete]

    def __repr__(self):
        return f"ScheduleDiff(create={len(self.to_create)}, delete={len(self.to_delete)})"


def replaceable_events(events: Iterable) -> List[TaskCalendarEvent]:
    """Non-completed task-linked events: the only ones a reconciliation may touch."""
    return [
        event for event in events
        if isinstance(event, TaskCalendarEvent) and not event.is_completed
    ]


def diff_schedule(desired_blocks: Iterable[TimeBlock], current_events: Iterable) -> ScheduleDiff:
    """
    Minimal create/delete set turning the current task events into the desired blocks.
    Completed and plain events are ignored. Identical keys are matched one-to-one,
    so duplicates on either side are created or deleted as needed.
    """
    unmatched_current: Dict[BlockKey, List[TaskCalendarEvent]] = defaultdict(list)
    for event in replaceable_events(current_events):
        unmatched_current[event_key(event)].append(event)

    diff = ScheduleDiff()
    for block in desired_blocks:
        matches = unmatched_current.get(block_key(block.task_id, block.start, block.end))
        if matches:
            matches.pop()
        else:
            diff.to_create.append(block)

    for events in unmatched_current.values():
        diff.to_delete.extend(events)
    diff.to_delete.sort(key=lambda event: (event.start_time, event.id))
    return diff


def is_same_schedule(current_events: Iterable, desired_blocks: Iterable[TimeBlock]) -> bool:
    return diff_schedule(desired_blocks, current_events).is_empty
