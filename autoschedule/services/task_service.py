"""
Task reads and writes used by the scheduling engine.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import NotFoundError, TransientIOError
from ..models import Task
from ..schemas import TaskOut, TaskUpdate

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(self, db: Session):
        self.db = db

    def get_tasks(self, user_id: int) -> List[TaskOut]:
        try:
            rows = (
                self.db.query(Task)
                .filter(Task.user_id == user_id)
                .order_by(Task.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            raise TransientIOError(f"Could not load tasks for user {user_id}: {e}") from e
        return [TaskOut.model_validate(row) for row in rows]

    def get_tasks_by_project(self, project_id: int) -> List[TaskOut]:
        try:
            rows = (
                self.db.query(Task)
                .filter(Task.project_id == project_id)
                .order_by(Task.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            raise TransientIOError(f"Could not load tasks for project {project_id}: {e}") from e
        return [TaskOut.model_validate(row) for row in rows]

    def get_task_by_id(self, task_id: int) -> Optional[TaskOut]:
        try:
            row = self.db.query(Task).filter(Task.id == task_id).first()
        except SQLAlchemyError as e:
            raise TransientIOError(f"Could not load task {task_id}: {e}") from e
        return TaskOut.model_validate(row) if row else None

    def update_task(self, task_id: int, task_update: TaskUpdate) -> TaskOut:
        task = self.db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise NotFoundError(f"Task {task_id} not found")

        for field, value in task_update.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(task, field, value)

        # Logged work never exceeds the plan
        if task.actual_duration_minutes > task.planned_duration_minutes:
            task.actual_duration_minutes = task.planned_duration_minutes

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransientIOError(f"Could not update task {task_id}: {e}") from e
        self.db.refresh(task)
        logger.info(f"Updated task {task_id}")
        return TaskOut.model_validate(task)
