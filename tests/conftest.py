#tests/conftest.py
import os

# Keep the application engine off the on-disk database while tests import the app
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from datetime import datetime, date, timedelta
from apscheduler.jobstores.base import JobLookupError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session as SQLAlchemySession
from sqlalchemy.pool import StaticPool

from autoschedule import models
from autoschedule.database import Base
from autoschedule.schemas import PlainCalendarEvent, TaskCalendarEvent, TaskOut, WorkingHours

# A Monday morning, before working hours
NOW = datetime(2026, 3, 2, 8, 0)

# In-memory SQLite setup for testing
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},  # Specific to SQLite
    poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session() -> SQLAlchemySession:
    Base.metadata.create_all(bind=engine)  # Create tables for each test
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


class FakeScheduler:
    """Records jobs instead of running them; mirrors the BackgroundScheduler calls we use."""

    def __init__(self):
        self.jobs = {}
        self.add_calls = []
        self.running = False

    def start(self):
        self.running = True

    def shutdown(self, wait=True):
        self.running = False

    def add_job(self, func, trigger=None, args=None, id=None, replace_existing=False, name=None):
        if id in self.jobs and not replace_existing:
            raise ValueError(f"Job {id} already exists")
        job = {"func": func, "trigger": trigger, "args": args or [], "name": name}
        self.jobs[id] = job
        self.add_calls.append(id)
        return job

    def remove_job(self, job_id, jobstore=None):
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]

    def fire(self, job_id):
        job = self.jobs.pop(job_id)
        return job["func"](*job["args"])


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def nine_to_five() -> WorkingHours:
    return WorkingHours(start_hour=9, end_hour=17)


# ----------------- In-memory snapshots ---------------------

def make_task(**kwargs) -> TaskOut:
    params = {
        "id": 1,
        "user_id": 1,
        "title": "Test Task",
        "planned_duration_minutes": 60,
        **kwargs
    }
    return TaskOut(**params)


def make_task_event(task_id: int, start: datetime, end: datetime, event_id: int = 100, **kwargs) -> TaskCalendarEvent:
    return TaskCalendarEvent(
        id=event_id,
        user_id=kwargs.pop("user_id", 1),
        title=kwargs.pop("title", f"Task {task_id}"),
        start_time=start,
        end_time=end,
        linked_task_id=task_id,
        **kwargs
    )


def make_plain_event(start: datetime, end: datetime, event_id: int = 500, **kwargs) -> PlainCalendarEvent:
    return PlainCalendarEvent(
        id=event_id,
        user_id=kwargs.pop("user_id", 1),
        title=kwargs.pop("title", "Meeting"),
        start_time=start,
        end_time=end,
        **kwargs
    )


# ----------------- Database rows ---------------------

def create_user_in_db(db: SQLAlchemySession, **kwargs) -> models.User:
    params = {"username": f"user{kwargs.get('id', '')}", **kwargs}
    user = models.User(**params)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_task_in_db(db: SQLAlchemySession, user: models.User, **kwargs) -> models.Task:
    """Helper function to create and commit a task to the database."""
    params = {
        "title": "Test Task",
        "user_id": user.id,
        "planned_duration_minutes": 60,
        "actual_duration_minutes": 0,
        **kwargs
    }
    task = models.Task(**params)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def create_event_in_db(db: SQLAlchemySession, user: models.User, start: datetime, end: datetime, **kwargs) -> models.CalendarEvent:
    event = models.CalendarEvent(user_id=user.id, title=kwargs.pop("title", "Event"), start_time=start, end_time=end, **kwargs)
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def create_schedule_in_db(db: SQLAlchemySession, user: models.User, start_hour: int, end_hour: int, **kwargs) -> models.Schedule:
    schedule = models.Schedule(
        user_id=user.id,
        name=kwargs.pop("name", f"{start_hour}-{end_hour}"),
        working_hours_start=start_hour,
        working_hours_end=end_hour,
        **kwargs
    )
    db.add(schedule)
    db.commit()
    db.refresh(schedule)
    return schedule


def at(day_offset: int, hour: int, minute: int = 0) -> datetime:
    """A time on NOW's date plus day_offset days."""
    return datetime.combine(NOW.date() + timedelta(days=day_offset), datetime.min.time()).replace(hour=hour, minute=minute)


def day(day_offset: int) -> date:
    return NOW.date() + timedelta(days=day_offset)
