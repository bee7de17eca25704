"""
Project-level view of how well the open tasks are covered by calendar events.
"""

from typing import Iterable

from pydantic import BaseModel

from .slot_utils import group_events_by_task
from ..algorithms.allocation import end_of_day
from ...models import TaskStatus


class ProjectSchedulingStatus(BaseModel):
    all_tasks_scheduled: bool
    has_deadline_violations: bool
    incomplete_tasks_count: int
    scheduled_tasks_count: int
    total_tasks_count: int


def check_project_scheduling_status(project_tasks: Iterable, events: Iterable) -> ProjectSchedulingStatus:
    """
    A task counts as scheduled when its non-completed events cover
    planned minus actual minutes. An empty project is never "all scheduled".
    """
    project_tasks = list(project_tasks)
    events_by_task = group_events_by_task(events)
    incomplete = [task for task in project_tasks if task.status != TaskStatus.COMPLETED]

    scheduled_count = 0
    has_violations = False
    for task in incomplete:
        open_events = [event for event in events_by_task.get(task.id, []) if not event.is_completed]
        scheduled_minutes = sum(
            (event.end_time - event.start_time).total_seconds() / 60 for event in open_events
        )
        remaining = (task.planned_duration_minutes or 0) - (task.actual_duration_minutes or 0)
        if scheduled_minutes >= remaining:
            scheduled_count += 1

        if task.due_date:
            deadline = end_of_day(task.due_date)
            if any(event.start_time > deadline for event in open_events):
                has_violations = True

    return ProjectSchedulingStatus(
        all_tasks_scheduled=bool(incomplete) and scheduled_count == len(incomplete) and not has_violations,
        has_deadline_violations=has_violations,
        incomplete_tasks_count=len(incomplete),
        scheduled_tasks_count=scheduled_count,
        total_tasks_count=len(project_tasks),
    )
