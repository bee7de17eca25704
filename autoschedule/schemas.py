from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime, date
from typing import Optional, List, Union, Literal, Annotated
import enum

from .models import TaskPriority, TaskStatus
from . import config

# ----------------- Task Schemas ---------------------

class TaskOut(BaseModel):
    id: int
    user_id: int
    project_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.NOT_STARTED
    due_date: Optional[date] = None
    planned_duration_minutes: int = Field(default=0, ge=0)
    actual_duration_minutes: int = Field(default=0, ge=0)
    dependencies: List[int] = Field(default_factory=list)
    blocked_by: List[int] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("dependencies", "blocked_by", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return value or []

    class Config:
        from_attributes = True

class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    status: Optional[TaskStatus] = None
    planned_duration_minutes: Optional[int] = Field(default=None, ge=0)
    actual_duration_minutes: Optional[int] = Field(default=None, ge=0)

# ----------------- Calendar Event Schemas ---------------------

class CalendarEventBase(BaseModel):
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    google_event_id: Optional[str] = None
    synced_from_google: bool = False

    @property
    def duration_minutes(self) -> int:
        return max(0, round((self.end_time - self.start_time).total_seconds() / 60))

    class Config:
        from_attributes = True

class PlainCalendarEvent(CalendarEventBase):
    kind: Literal["plain"] = "plain"

class TaskCalendarEvent(CalendarEventBase):
    kind: Literal["task"] = "task"
    linked_task_id: int
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

CalendarEventUnion = Annotated[Union[PlainCalendarEvent, TaskCalendarEvent], Field(discriminator="kind")]


def event_from_row(row) -> Union[PlainCalendarEvent, TaskCalendarEvent]:
    """Build the tagged event variant from a CalendarEvent row (task-linked iff linked_task_id is set)."""
    if row.linked_task_id is not None:
        return TaskCalendarEvent.model_validate(row)
    return PlainCalendarEvent.model_validate(row)


def _as_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Event times are stored as naive local wall time; offsets are converted, not dropped."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class CalendarEventCreate(BaseModel):
    user_id: int
    title: str
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None
    linked_task_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    google_event_id: Optional[str] = None
    synced_from_google: bool = False

    @field_validator("start_time", "end_time", "completed_at")
    @classmethod
    def to_local_time(cls, v):
        return _as_local_naive(v)

class CalendarEventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    linked_task_id: Optional[int] = None
    # An explicit null un-completes the event; leaving the field out keeps the current value
    completed_at: Optional[datetime] = None
    synced_from_google: Optional[bool] = None

    @field_validator("start_time", "end_time", "completed_at")
    @classmethod
    def to_local_time(cls, v):
        return _as_local_naive(v)

class BatchCreateResult(BaseModel):
    success: bool
    index: int
    event: Optional[CalendarEventUnion] = None
    error: Optional[str] = None

class BatchDeleteResult(BaseModel):
    success: bool
    id: int
    error: Optional[str] = None

# ----------------- Schedule Schemas ---------------------

class ScheduleSource(str, enum.Enum):
    TASK = "task"
    PROJECT = "project"
    USER = "user"
    FALLBACK = "fallback"

class ScheduleOut(BaseModel):
    id: int
    user_id: int
    name: str
    working_hours_start: int
    working_hours_end: int
    is_default: bool = False

    class Config:
        from_attributes = True

class ScheduleBindingOut(BaseModel):
    id: int
    schedule_id: int
    effective_from: datetime
    effective_to: Optional[datetime] = None

    class Config:
        from_attributes = True

class WorkingHours(BaseModel):
    start_hour: int = Field(ge=0, le=23)
    end_hour: int = Field(ge=0, le=23)
    source: ScheduleSource = ScheduleSource.FALLBACK
    schedule_id: Optional[int] = None

    @model_validator(mode="after")
    def _check_order(self):
        if self.start_hour >= self.end_hour:
            raise ValueError("working_hours_start must be before working_hours_end")
        return self

    @classmethod
    def from_schedule(cls, schedule, source: ScheduleSource) -> "WorkingHours":
        return cls(
            start_hour=schedule.working_hours_start,
            end_hour=schedule.working_hours_end,
            source=source,
            schedule_id=schedule.id,
        )

    @classmethod
    def fallback(cls) -> "WorkingHours":
        return cls(
            start_hour=config.DEFAULT_WORKING_HOURS_START,
            end_hour=config.DEFAULT_WORKING_HOURS_END,
            source=ScheduleSource.FALLBACK,
        )

# ----------------- Scheduling Config ---------------------

class SchedulingConfig(BaseModel):
    block_duration_minutes: int = Field(default=config.BLOCK_DURATION_MINUTES, gt=0)
    default_horizon_days: int = Field(default=config.DEFAULT_HORIZON_DAYS, ge=0)
    gap_minutes: int = Field(default=config.GAP_MINUTES, ge=0)
    skip_weekends: bool = config.SKIP_WEEKENDS

# ----------------- Auto-Schedule Schemas ---------------------

class ScheduledBlockOut(BaseModel):
    task_id: int
    title: str
    start_time: datetime
    end_time: datetime
    violates_deadline: bool = False

class SchedulePreviewOut(BaseModel):
    blocks: List[ScheduledBlockOut] = Field(default_factory=list)
    total_blocks: int = 0
    total_violations: int = 0
    tasks_with_deadline_count: int = 0
    tasks_without_deadline_count: int = 0
    to_create: int = 0
    to_delete: int = 0

class RunReportOut(BaseModel):
    status: str
    trigger: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    created: int = 0
    deleted: int = 0
    failed_creates: int = 0
    failed_deletes: int = 0
    total_violations: int = 0
    error: Optional[str] = None

class NotifyRequest(BaseModel):
    reason: Literal["tasks_changed", "events_changed", "visibility_regained", "change"] = "change"
