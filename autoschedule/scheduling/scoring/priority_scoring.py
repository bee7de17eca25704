"""
Task ranking strategies: decide which tasks get scarce time first.
"""

from datetime import datetime, time
from typing import Callable, List, Optional, Sequence

from ...models import TaskPriority

RankStrategy = Callable[[List], List]

PRIORITY_ORDER = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}


def calculate_priority_score(task) -> float:
    """
    Map priority to score: Low: 0.3, Medium: 0.6, High: 1.0
    """
    if task.priority == TaskPriority.HIGH:
        return 1.0
    elif task.priority == TaskPriority.MEDIUM:
        return 0.6
    elif task.priority == TaskPriority.LOW:
        return 0.3
    else:
        return 0.5  # Default


def calculate_deadline_urgency_score(task, now: Optional[datetime] = None) -> float:
    """
    Calculate urgency score based on deadline proximity (0.0 - 1.0).
    Higher score = closer to deadline = more urgent.
    """
    if not task.due_date:
        return 0.0  # No urgency if no deadline

    now = now or datetime.now()
    deadline = datetime.combine(task.due_date, time.max)
    hours_until_deadline = (deadline - now).total_seconds() / 3600

    # Overdue
    if hours_until_deadline < 0:
        return 1.0

    if hours_until_deadline <= 24:
        urgency_score = 1.0 - (hours_until_deadline / 24.0) ** 2
        return max(0.8, urgency_score)
    elif hours_until_deadline <= 72:
        urgency_score = 0.8 - (hours_until_deadline - 24.0) / 48.0 * 0.4
        return max(0.4, urgency_score)
    elif hours_until_deadline <= 168:
        urgency_score = 0.4 - (hours_until_deadline - 72.0) / 96.0 * 0.2
        return max(0.2, urgency_score)
    else:
        urgency_score = 0.2 - (hours_until_deadline - 168.0) / 168.0 * 0.1
        return max(0.1, urgency_score)


def calculate_task_selection_priority(task, now: Optional[datetime] = None) -> float:
    """
    Combined score used by urgency_rank_strategy.
    Priority weighs 60%, deadline urgency 40%.
    """
    return 0.6 * calculate_priority_score(task) + 0.4 * calculate_deadline_urgency_score(task, now)


# ================================
# STRATEGIES
# ================================

def default_rank_strategy(tasks: List) -> List:
    """
    Ascending due date with undated tasks last, ties broken by priority (high first).
    Python's sort is stable, so equal keys keep their input order.
    """
    return sorted(
        tasks,
        key=lambda task: (
            task.due_date is None,
            task.due_date or datetime.max.date(),
            PRIORITY_ORDER.get(task.priority, len(PRIORITY_ORDER)),
        ),
    )


def urgency_rank_strategy(tasks: List) -> List:
    """Highest combined priority/urgency score first."""
    now = datetime.now()
    return sorted(tasks, key=lambda task: calculate_task_selection_priority(task, now), reverse=True)


def rank_tasks(tasks: Sequence, strategy: Optional[RankStrategy] = None) -> List:
    """
    Order a batch of tasks before allocation. `strategy` replaces the default
    ordering wholesale and must return the same tasks in a total order.
    """
    strategy = strategy or default_rank_strategy
    ranked = strategy(list(tasks))
    if len(ranked) != len(tasks):
        raise ValueError("Rank strategy must return every task exactly once")
    return ranked
