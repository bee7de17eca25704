"""
Calendar event CRUD.

Every write goes through here so two invariants always hold:
- no event of a user intersects another of the same user (synced events exempt)
- completing, un-completing, resizing or relinking a completed task event moves the task's
  actual_duration_minutes in the same transaction
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import NotFoundError, SchedulingError, TransientIOError
from ..models import CalendarEvent, Task
from ..schemas import (
    BatchCreateResult,
    BatchDeleteResult,
    CalendarEventCreate,
    CalendarEventUpdate,
    event_from_row,
)
from ..scheduling.constraints.time_constraints import check_no_overlap

logger = logging.getLogger(__name__)


def _minutes_between(start: datetime, end: datetime) -> int:
    return max(0, round((end - start).total_seconds() / 60))


class CalendarEventService:
    def __init__(self, db: Session):
        self.db = db

    # ================================
    # READS
    # ================================

    def get_calendar_events(self, user_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None):
        """Events of a user, optionally restricted to those intersecting [start, end)."""
        try:
            query = self.db.query(CalendarEvent).filter(CalendarEvent.user_id == user_id)
            if start is not None:
                query = query.filter(CalendarEvent.end_time > start)
            if end is not None:
                query = query.filter(CalendarEvent.start_time < end)
            rows = query.order_by(CalendarEvent.start_time.asc(), CalendarEvent.id.asc()).all()
        except SQLAlchemyError as e:
            raise TransientIOError(f"Could not load events for user {user_id}: {e}") from e
        return [event_from_row(row) for row in rows]

    def get_calendar_events_by_task_id(self, task_id: int):
        try:
            rows = (
                self.db.query(CalendarEvent)
                .filter(CalendarEvent.linked_task_id == task_id)
                .order_by(CalendarEvent.start_time.asc())
                .all()
            )
        except SQLAlchemyError as e:
            raise TransientIOError(f"Could not load events for task {task_id}: {e}") from e
        return [event_from_row(row) for row in rows]

    # ================================
    # INVARIANT HELPERS
    # ================================

    def _ensure_free(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        exclude_event_ids: Iterable[int] = (),
        synced_from_google: bool = False,
    ):
        candidates = (
            self.db.query(CalendarEvent)
            .filter(
                CalendarEvent.user_id == user_id,
                CalendarEvent.start_time < end,
                CalendarEvent.end_time > start,
            )
            .all()
        )
        check_no_overlap(start, end, candidates, exclude_event_ids, synced_from_google)

    def _get_linked_task(self, task_id: Optional[int]) -> Optional[Task]:
        if task_id is None:
            return None
        task = self.db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise NotFoundError(f"Linked task {task_id} not found")
        return task

    @staticmethod
    def _log_work(task: Task, minutes: int):
        """Add logged minutes, capped at the plan."""
        planned = task.planned_duration_minutes or 0
        task.actual_duration_minutes = min(planned, (task.actual_duration_minutes or 0) + minutes)

    @staticmethod
    def _unlog_work(task: Task, minutes: int):
        task.actual_duration_minutes = max(0, (task.actual_duration_minutes or 0) - minutes)

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise TransientIOError(f"Could not {action}: {e}") from e

    # ================================
    # SINGLE EVENT WRITES
    # ================================

    def create_calendar_event(self, event_in: CalendarEventCreate, exclude_event_ids: Iterable[int] = ()):
        self._ensure_free(
            event_in.user_id,
            event_in.start_time,
            event_in.end_time,
            exclude_event_ids,
            event_in.synced_from_google,
        )
        task = self._get_linked_task(event_in.linked_task_id)

        event = CalendarEvent(**event_in.model_dump())
        self.db.add(event)
        if task is not None and event_in.completed_at is not None:
            self._log_work(task, _minutes_between(event_in.start_time, event_in.end_time))

        self._commit("create event")
        self.db.refresh(event)
        return event_from_row(event)

    def update_calendar_event(self, event_id: int, event_update: CalendarEventUpdate):
        event = self.db.query(CalendarEvent).filter(CalendarEvent.id == event_id).first()
        if not event:
            raise NotFoundError(f"Event {event_id} not found")

        changes = event_update.model_dump(exclude_unset=True)
        new_start = changes.get("start_time") or event.start_time
        new_end = changes.get("end_time") or event.end_time
        synced = changes.get("synced_from_google")
        if synced is None:
            synced = event.synced_from_google

        if "start_time" in changes or "end_time" in changes:
            self._ensure_free(event.user_id, new_start, new_end, [event.id], synced)
        if "linked_task_id" in changes:
            self._get_linked_task(changes["linked_task_id"])

        old_task_id = event.linked_task_id
        old_minutes = _minutes_between(event.start_time, event.end_time)
        was_completed = event.completed_at is not None

        for field in ("title", "start_time", "end_time", "synced_from_google"):
            if changes.get(field) is not None:
                setattr(event, field, changes[field])
        for field in ("description", "linked_task_id"):
            if field in changes:
                setattr(event, field, changes[field])
        if "completed_at" in changes:
            event.completed_at = changes["completed_at"]
        if event.linked_task_id is None:
            # Only task events carry completion
            event.completed_at = None

        new_minutes = _minutes_between(event.start_time, event.end_time)
        is_completed = event.completed_at is not None

        moved = old_task_id != event.linked_task_id or old_minutes != new_minutes
        if was_completed != is_completed or (was_completed and moved):
            if was_completed and old_task_id is not None:
                old_task = self.db.query(Task).filter(Task.id == old_task_id).first()
                if old_task is not None:
                    self._unlog_work(old_task, old_minutes)
            if is_completed:
                self._log_work(self._get_linked_task(event.linked_task_id), new_minutes)
            logger.info(
                f"Event {event_id} logged work moved: task {old_task_id} "
                f"({old_minutes if was_completed else 0} min) -> task {event.linked_task_id} "
                f"({new_minutes if is_completed else 0} min)"
            )

        self._commit(f"update event {event_id}")
        self.db.refresh(event)
        return event_from_row(event)

    def delete_calendar_event(self, event_id: int):
        event = self.db.query(CalendarEvent).filter(CalendarEvent.id == event_id).first()
        if not event:
            raise NotFoundError(f"Event {event_id} not found")

        if event.completed_at is not None and event.linked_task_id is not None:
            task = self.db.query(Task).filter(Task.id == event.linked_task_id).first()
            if task is not None:
                self._unlog_work(task, _minutes_between(event.start_time, event.end_time))

        deleted = event_from_row(event)
        self.db.delete(event)
        self._commit(f"delete event {event_id}")
        return deleted

    # ================================
    # BATCH WRITES
    # ================================

    def create_calendar_events_batch(
        self,
        events_in: Sequence[CalendarEventCreate],
        exclude_event_ids: Iterable[int] = (),
    ) -> List[BatchCreateResult]:
        """
        Create events one by one, reporting each outcome. Events listed in
        exclude_event_ids are ignored by the overlap check.
        """
        excluded = list(exclude_event_ids)
        results: List[BatchCreateResult] = []
        for index, event_in in enumerate(events_in):
            try:
                event = self.create_calendar_event(event_in, excluded)
            except (SchedulingError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.warning(f"Batch create item {index} failed: {e}")
                results.append(BatchCreateResult(success=False, index=index, error=str(e)))
                continue
            results.append(BatchCreateResult(success=True, index=index, event=event))
        return results

    def delete_calendar_events_batch(self, event_ids: Sequence[int]) -> List[BatchDeleteResult]:
        results: List[BatchDeleteResult] = []
        for event_id in event_ids:
            try:
                self.delete_calendar_event(event_id)
            except (SchedulingError, SQLAlchemyError) as e:
                self.db.rollback()
                logger.warning(f"Batch delete of event {event_id} failed: {e}")
                results.append(BatchDeleteResult(success=False, id=event_id, error=str(e)))
                continue
            results.append(BatchDeleteResult(success=True, id=event_id))
        return results
