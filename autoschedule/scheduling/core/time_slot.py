"""
Time block representation for the scheduling system.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional


class TimeBlock:
    """
    A half-open interval [start, end) on the calendar.
    - A placed block carries the task_id it was allocated for
    - An occupied interval coming from an existing event may carry no task_id
    """
    def __init__(self, start: datetime, end: datetime, task_id: Optional[int] = None):
        self.start = start
        self.end = end
        self.task_id = task_id

    def duration(self) -> timedelta:
        return self.end - self.start

    def duration_minutes(self) -> int:
        return int(self.duration().total_seconds() // 60)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end

    def __lt__(self, other):
        return self.start < other.start

    def __eq__(self, other):
        if not isinstance(other, TimeBlock):
            return NotImplemented
        return (self.start, self.end, self.task_id) == (other.start, other.end, other.task_id)

    def __hash__(self):
        return hash((self.start, self.end, self.task_id))

    def __repr__(self):
        window = f"{self.start.strftime('%Y-%m-%d %I:%M %p')} - {self.end.strftime('%I:%M %p')}"
        if self.task_id is not None:
            return f"TaskBlock({window}, task={self.task_id})"
        return f"OccupiedBlock({window})"


class OccupiedIntervals:
    """
    Growing set of intervals the allocator must avoid.
    One instance is threaded through a whole allocation run so that
    blocks placed for earlier tasks are visible to later ones.
    """
    def __init__(self, blocks: Iterable[TimeBlock] = ()):
        self.blocks: List[TimeBlock] = sorted(blocks)

    def add(self, block: TimeBlock):
        self.blocks.append(block)
        self.blocks.sort()

    def extend(self, blocks: Iterable[TimeBlock]):
        self.blocks.extend(blocks)
        self.blocks.sort()

    def find_overlap(self, start: datetime, end: datetime) -> Optional[TimeBlock]:
        for block in self.blocks:
            if block.start >= end:
                break
            if block.overlaps(start, end):
                return block
        return None

    def is_free(self, start: datetime, end: datetime) -> bool:
        return self.find_overlap(start, end) is None

    def __len__(self):
        return len(self.blocks)

    def __iter__(self):
        return iter(self.blocks)

    def __repr__(self):
        return f"OccupiedIntervals({len(self.blocks)} blocks)"
