"""Auto-scheduling API: preview a plan, run it now, hint at changes, inspect working hours."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import SchedulingError
from ..models import Project
from ..schemas import (
    NotifyRequest,
    RunReportOut,
    ScheduledBlockOut,
    SchedulePreviewOut,
    WorkingHours,
)
from ..scheduling.algorithms.diff import diff_schedule
from ..scheduling.core.scheduler import plan_schedule
from ..scheduling.utils.project_status import ProjectSchedulingStatus, check_project_scheduling_status
from ..services.calendar_event_service import CalendarEventService
from ..services.reconciliation import RunStatus
from ..services.schedule_resolver import ScheduleResolver
from ..services.schedule_service import ScheduleService
from ..services.scheduler_service import reconciliation_service
from ..services.task_service import TaskService
from .errors import to_http_exception

router = APIRouter(tags=["schedule"])


def get_reconciliation_service():
    return reconciliation_service


@router.get("/users/{user_id}/schedule/preview", response_model=SchedulePreviewOut)
def preview_schedule(user_id: int, db: Session = Depends(get_db)):
    """Plan the user's open tasks without touching the calendar."""
    task_service = TaskService(db)
    event_service = CalendarEventService(db)
    resolver = ScheduleResolver(ScheduleService(db), task_service)
    now = datetime.now()
    try:
        tasks = task_service.get_tasks(user_id)
        events = event_service.get_calendar_events(user_id)
        plan = plan_schedule(tasks, events, resolver.resolve_many(tasks, now), now=now)
    except SchedulingError as e:
        raise to_http_exception(e)

    diff = diff_schedule(plan.desired_blocks(), events)
    blocks = []
    for task_plan in plan.task_plans:
        violations = set(task_plan.violations)
        for block in task_plan.blocks:
            blocks.append(ScheduledBlockOut(
                task_id=task_plan.task_id,
                title=task_plan.title,
                start_time=block.start,
                end_time=block.end,
                violates_deadline=block in violations,
            ))

    return SchedulePreviewOut(
        blocks=blocks,
        total_blocks=plan.total_blocks,
        total_violations=plan.total_violations,
        tasks_with_deadline_count=plan.tasks_with_deadline_count,
        tasks_without_deadline_count=plan.tasks_without_deadline_count,
        to_create=len(diff.to_create),
        to_delete=len(diff.to_delete),
    )


@router.post("/users/{user_id}/schedule/auto", response_model=RunReportOut)
def auto_schedule(user_id: int, service=Depends(get_reconciliation_service)):
    """Explicit "Auto-Schedule now": re-fetch and reconcile, ignoring the throttle."""
    report = service.get_or_create_controller(user_id).run_now()
    if report.status == RunStatus.BUSY:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A scheduling run is already in progress")
    if report.status == RunStatus.FAILED:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=report.error)

    applied = report.apply
    return RunReportOut(
        status=report.status.value,
        trigger=report.trigger,
        started_at=report.started_at,
        finished_at=report.finished_at,
        created=len(applied.created) if applied else 0,
        deleted=len(applied.deleted) if applied else 0,
        failed_creates=len(applied.failed_creates) if applied else 0,
        failed_deletes=len(applied.failed_deletes) if applied else 0,
        total_violations=report.plan.total_violations if report.plan else 0,
    )


@router.post("/users/{user_id}/schedule/notify", status_code=status.HTTP_202_ACCEPTED)
def notify_schedule_change(user_id: int, request: NotifyRequest, service=Depends(get_reconciliation_service)):
    """Host hint that something changed; the run itself is debounced."""
    controller = service.get_or_create_controller(user_id)
    if request.reason == "visibility_regained":
        controller.on_visibility_regained()
    else:
        controller.notify_change(request.reason)
    return {"status": "scheduled", "reason": request.reason}


@router.get("/tasks/{task_id}/schedule", response_model=WorkingHours)
def get_task_working_hours(task_id: int, db: Session = Depends(get_db)):
    resolver = ScheduleResolver(ScheduleService(db), TaskService(db))
    try:
        return resolver.resolve_task_id(task_id)
    except SchedulingError as e:
        raise to_http_exception(e)


@router.get("/users/{user_id}/projects/{project_id}/scheduling-status", response_model=ProjectSchedulingStatus)
def get_project_scheduling_status(user_id: int, project_id: int, db: Session = Depends(get_db)):
    project = db.query(Project).filter(Project.id == project_id, Project.user_id == user_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    try:
        tasks = TaskService(db).get_tasks_by_project(project_id)
        events = CalendarEventService(db).get_calendar_events(user_id)
    except SchedulingError as e:
        raise to_http_exception(e)
    return check_project_scheduling_status(tasks, events)
