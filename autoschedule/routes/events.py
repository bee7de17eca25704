"""Calendar event CRUD. Every write keeps the overlap and duration bookkeeping rules."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import SchedulingError
from ..schemas import CalendarEventCreate, CalendarEventUnion, CalendarEventUpdate
from ..services.calendar_event_service import CalendarEventService
from .errors import to_http_exception
from .schedule import get_reconciliation_service

router = APIRouter(tags=["events"])


def _notify(service, user_id: int):
    controller = service.get_controller(user_id)
    if controller:
        controller.notify_change("events_changed")


@router.get("/", response_model=List[CalendarEventUnion])
def list_events(
    user_id: int = Query(...),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
):
    try:
        return CalendarEventService(db).get_calendar_events(user_id, start, end)
    except SchedulingError as e:
        raise to_http_exception(e)


@router.post("/", response_model=CalendarEventUnion, status_code=status.HTTP_201_CREATED)
def create_event(
    event: CalendarEventCreate,
    db: Session = Depends(get_db),
    service=Depends(get_reconciliation_service),
):
    try:
        created = CalendarEventService(db).create_calendar_event(event)
    except SchedulingError as e:
        raise to_http_exception(e)
    _notify(service, created.user_id)
    return created


@router.patch("/{event_id}", response_model=CalendarEventUnion)
def update_event(
    event_id: int,
    event_update: CalendarEventUpdate,
    db: Session = Depends(get_db),
    service=Depends(get_reconciliation_service),
):
    try:
        updated = CalendarEventService(db).update_calendar_event(event_id, event_update)
    except SchedulingError as e:
        db.rollback()
        raise to_http_exception(e)
    _notify(service, updated.user_id)
    return updated


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    service=Depends(get_reconciliation_service),
):
    try:
        deleted = CalendarEventService(db).delete_calendar_event(event_id)
    except SchedulingError as e:
        raise to_http_exception(e)
    _notify(service, deleted.user_id)
