"""
Time-related constraint checking for calendar events.
"""

from datetime import datetime
from typing import Iterable, Optional

from ...exceptions import OverlapError, ValidationError


def validate_interval(start: datetime, end: datetime):
    """Reject empty or inverted intervals; they are never corrected silently."""
    if start is None or end is None:
        raise ValidationError("Event needs both a start and an end time")
    if end <= start:
        raise ValidationError(f"Event end {end} must be after its start {start}")


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open [start, end) intersection: touching intervals do not overlap."""
    return a_start < b_end and b_start < a_end


def find_conflicting_event(
    start: datetime,
    end: datetime,
    events: Iterable,
    exclude_event_ids: Iterable[int] = (),
):
    """
    First event from `events` whose interval intersects [start, end).
    Externally synced events never conflict.
    """
    excluded = set(exclude_event_ids)
    for event in events:
        if event.id in excluded or event.synced_from_google:
            continue
        if intervals_overlap(start, end, event.start_time, event.end_time):
            return event
    return None


def check_no_overlap(
    start: datetime,
    end: datetime,
    events: Iterable,
    exclude_event_ids: Iterable[int] = (),
    synced_from_google: Optional[bool] = False,
):
    """Raise ValidationError if [start, end) collides with another event of the same user."""
    validate_interval(start, end)
    if synced_from_google:
        return
    conflict = find_conflicting_event(start, end, events, exclude_event_ids)
    if conflict is not None:
        raise OverlapError(
            f"Event overlaps with '{conflict.title}' "
            f"({conflict.start_time.isoformat()} - {conflict.end_time.isoformat()})"
        )
