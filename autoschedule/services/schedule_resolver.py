"""
Working-hours resolution: task override, then project override, then the
user's schedule, then the built-in fallback window.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, Optional

from ..exceptions import NotFoundError
from ..schemas import ScheduleSource, TaskOut, WorkingHours

logger = logging.getLogger(__name__)


class ScheduleResolver:
    """
    Walks the override hierarchy for a task. Lookup failures other than
    "not found" propagate as TransientIOError from the schedule service.
    """
    def __init__(self, schedule_service, task_service=None):
        self.schedule_service = schedule_service
        self.task_service = task_service

    def _from_binding(self, binding, source: ScheduleSource) -> Optional[WorkingHours]:
        if binding is None:
            return None
        schedule = self.schedule_service.get_schedule_by_id(binding.schedule_id)
        if schedule is None:
            # Binding points at a deleted schedule; fall through to the next level
            logger.warning(f"{source.value} binding {binding.id} references missing schedule {binding.schedule_id}")
            return None
        return WorkingHours.from_schedule(schedule, source)

    def _user_hours(self, user_id: int) -> WorkingHours:
        schedule = self.schedule_service.get_user_schedule(user_id)
        if schedule is None:
            return WorkingHours.fallback()
        return WorkingHours.from_schedule(schedule, ScheduleSource.USER)

    def resolve(self, task: Optional[TaskOut], now: Optional[datetime] = None) -> WorkingHours:
        if task is None:
            raise NotFoundError("Cannot resolve working hours for a missing task")
        now = now or datetime.now()

        binding = self.schedule_service.get_task_schedule_binding(task.id, now)
        hours = self._from_binding(binding, ScheduleSource.TASK)
        if hours:
            return hours

        if task.project_id is not None:
            binding = self.schedule_service.get_project_schedule_binding(task.project_id, now)
            hours = self._from_binding(binding, ScheduleSource.PROJECT)
            if hours:
                return hours

        return self._user_hours(task.user_id)

    def resolve_task_id(self, task_id: int, now: Optional[datetime] = None) -> WorkingHours:
        if self.task_service is None:
            raise ValueError("resolve_task_id needs a task service")
        task = self.task_service.get_task_by_id(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        return self.resolve(task, now)

    def resolve_many(self, tasks: Iterable[TaskOut], now: Optional[datetime] = None) -> Dict[int, WorkingHours]:
        """Working hours per task id. The user-level schedule is looked up once per user."""
        now = now or datetime.now()
        user_hours: Dict[int, WorkingHours] = {}
        resolved: Dict[int, WorkingHours] = {}
        for task in tasks:
            binding = self.schedule_service.get_task_schedule_binding(task.id, now)
            hours = self._from_binding(binding, ScheduleSource.TASK)
            if hours is None and task.project_id is not None:
                binding = self.schedule_service.get_project_schedule_binding(task.project_id, now)
                hours = self._from_binding(binding, ScheduleSource.PROJECT)
            if hours is None:
                if task.user_id not in user_hours:
                    user_hours[task.user_id] = self._user_hours(task.user_id)
                hours = user_hours[task.user_id]
            resolved[task.id] = hours
        return resolved
