"""
Batch planner that orchestrates ranking and allocation for a user's whole task list.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

from .time_slot import TimeBlock, OccupiedIntervals
from ..algorithms.allocation import prepare_task_events
from ..scoring.priority_scoring import RankStrategy, rank_tasks
from ..utils.slot_utils import event_to_block
from ...models import TaskStatus
from ...schemas import SchedulingConfig, TaskCalendarEvent, WorkingHours

logger = logging.getLogger(__name__)


@dataclass
class TaskPlan:
    task_id: int
    title: str
    has_deadline: bool
    working_hours: WorkingHours
    blocks: List[TimeBlock] = field(default_factory=list)
    violations: List[TimeBlock] = field(default_factory=list)


@dataclass
class SchedulePlan:
    task_plans: List[TaskPlan] = field(default_factory=list)

    @property
    def total_blocks(self) -> int:
        return sum(len(plan.blocks) for plan in self.task_plans)

    @property
    def total_violations(self) -> int:
        return sum(len(plan.violations) for plan in self.task_plans)

    @property
    def tasks_with_deadline_count(self) -> int:
        return sum(1 for plan in self.task_plans if plan.has_deadline)

    @property
    def tasks_without_deadline_count(self) -> int:
        return sum(1 for plan in self.task_plans if not plan.has_deadline)

    def desired_blocks(self) -> List[TimeBlock]:
        return [block for plan in self.task_plans for block in plan.blocks]

    def titles(self) -> Dict[int, str]:
        return {plan.task_id: plan.title for plan in self.task_plans}


# ================================
# OCCUPIED SET
# ================================

def build_occupied_intervals(events: Iterable) -> OccupiedIntervals:
    """
    Everything that already holds time: plain events (synced ones included) and
    completed task events. Non-completed task events are replaceable, so they
    are left out and their work is planned again.
    """
    blocks = []
    for event in events:
        if isinstance(event, TaskCalendarEvent) and not event.is_completed:
            continue
        blocks.append(event_to_block(event))
    return OccupiedIntervals(blocks)


# ================================
# BATCH PLANNING
# ================================

def plan_schedule(
    tasks: Iterable,
    events: Iterable,
    working_hours_by_task: Mapping[int, WorkingHours],
    config: Optional[SchedulingConfig] = None,
    strategy: Optional[RankStrategy] = None,
    now: Optional[datetime] = None,
) -> SchedulePlan:
    """
    Rank the open tasks and allocate them one by one, threading a single
    OccupiedIntervals accumulator and a cursor through the loop.
    """
    config = config or SchedulingConfig()
    now = now or datetime.now()
    gap = timedelta(minutes=config.gap_minutes)

    open_tasks = [task for task in tasks if task.status != TaskStatus.COMPLETED]
    ranked = rank_tasks(open_tasks, strategy)
    occupied = build_occupied_intervals(events)

    plan = SchedulePlan()
    cursor: Optional[datetime] = None
    for task in ranked:
        working_hours = working_hours_by_task.get(task.id) or WorkingHours.fallback()
        result = prepare_task_events(
            task,
            (),
            working_hours,
            occupied=occupied,
            start_from=cursor,
            config=config,
            now=now,
        )
        plan.task_plans.append(TaskPlan(
            task_id=task.id,
            title=task.title,
            has_deadline=task.due_date is not None,
            working_hours=working_hours,
            blocks=result.blocks,
            violations=result.violations,
        ))

        if result.blocks:
            occupied.extend(result.blocks)
            cursor = result.blocks[-1].end + gap
        if result.violations:
            logger.warning(f"Task {task.id} has {len(result.violations)} block(s) past its due date")

    logger.info(
        f"Planned {plan.total_blocks} block(s) for {len(plan.task_plans)} task(s), "
        f"{plan.total_violations} deadline violation(s)"
    )
    return plan
