"""
Read-only access to schedules and their task/project override bindings.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import NoResultFound, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import TransientIOError
from ..models import ProjectSchedule, Schedule, TaskSchedule, User
from ..schemas import ScheduleBindingOut, ScheduleOut


class ScheduleService:
    def __init__(self, db: Session):
        self.db = db

    def _active_binding(self, model, owner_column, owner_id: int, now: datetime) -> Optional[ScheduleBindingOut]:
        """Binding active at `now`; the latest effective_from wins when several are."""
        try:
            row = (
                self.db.query(model)
                .filter(
                    owner_column == owner_id,
                    model.effective_from <= now,
                    or_(model.effective_to.is_(None), model.effective_to > now),
                )
                .order_by(model.effective_from.desc(), model.id.desc())
                .limit(1)
                .one()
            )
        except NoResultFound:
            return None
        except SQLAlchemyError as e:
            raise TransientIOError(f"Could not load {model.__tablename__} for {owner_id}: {e}") from e
        return ScheduleBindingOut.model_validate(row)

    def get_task_schedule_binding(self, task_id: int, now: Optional[datetime] = None) -> Optional[ScheduleBindingOut]:
        return self._active_binding(TaskSchedule, TaskSchedule.task_id, task_id, now or datetime.now())

    def get_project_schedule_binding(self, project_id: int, now: Optional[datetime] = None) -> Optional[ScheduleBindingOut]:
        return self._active_binding(ProjectSchedule, ProjectSchedule.project_id, project_id, now or datetime.now())

    def get_schedule_by_id(self, schedule_id: int) -> Optional[ScheduleOut]:
        try:
            row = self.db.query(Schedule).filter(Schedule.id == schedule_id).one()
        except NoResultFound:
            return None
        except SQLAlchemyError as e:
            raise TransientIOError(f"Could not load schedule {schedule_id}: {e}") from e
        return ScheduleOut.model_validate(row)

    def get_user_schedule(self, user_id: int) -> Optional[ScheduleOut]:
        """The user's designated active schedule, else their default one, else None."""
        try:
            user = self.db.query(User).filter(User.id == user_id).first()
            if user and user.active_schedule_id is not None:
                active = (
                    self.db.query(Schedule)
                    .filter(Schedule.id == user.active_schedule_id, Schedule.user_id == user_id)
                    .first()
                )
                if active:
                    return ScheduleOut.model_validate(active)

            default = (
                self.db.query(Schedule)
                .filter(Schedule.user_id == user_id, Schedule.is_default.is_(True))
                .order_by(Schedule.id.asc())
                .first()
            )
        except SQLAlchemyError as e:
            raise TransientIOError(f"Could not load schedule for user {user_id}: {e}") from e
        return ScheduleOut.model_validate(default) if default else None
