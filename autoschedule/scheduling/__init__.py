"""
Auto-scheduling engine

Greedy placement of task work into working-hours time blocks, plus the
desired-vs-current diff used to keep the calendar in sync.
"""

from .core.scheduler import plan_schedule, SchedulePlan, TaskPlan
from .core.time_slot import TimeBlock, OccupiedIntervals
from .algorithms.allocation import allocate, prepare_task_events, calculate_remaining_minutes
from .algorithms.diff import diff_schedule, is_same_schedule, ScheduleDiff
from .scoring.priority_scoring import rank_tasks, default_rank_strategy, urgency_rank_strategy

__version__ = "1.0.0"
