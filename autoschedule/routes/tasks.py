from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List

from ..database import get_db
from ..exceptions import SchedulingError
from ..schemas import TaskOut, TaskUpdate
from ..services.task_service import TaskService
from .errors import to_http_exception
from .schedule import get_reconciliation_service

router = APIRouter(tags=["tasks"])


@router.get("/users/{user_id}/tasks", response_model=List[TaskOut])
def read_tasks(user_id: int, db: Session = Depends(get_db)):
    try:
        return TaskService(db).get_tasks(user_id)
    except SchedulingError as e:
        raise to_http_exception(e)


@router.get("/tasks/{task_id}", response_model=TaskOut)
def read_task(task_id: int, db: Session = Depends(get_db)):
    task = TaskService(db).get_task_by_id(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.patch("/tasks/{task_id}", response_model=TaskOut)
def update_task(
    task_id: int,
    task_update: TaskUpdate,
    db: Session = Depends(get_db),
    service=Depends(get_reconciliation_service),
):
    task_service = TaskService(db)
    try:
        task = task_service.update_task(task_id, task_update)
        # Hand the fresh task list to the user's controller; it only reacts to relevant changes
        controller = service.get_controller(task.user_id)
        if controller:
            controller.on_tasks_changed(task_service.get_tasks(task.user_id))
    except SchedulingError as e:
        raise to_http_exception(e)
    return task
