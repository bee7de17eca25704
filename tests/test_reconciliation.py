#tests/test_reconciliation.py
from datetime import timedelta

import pytest

from autoschedule.models import CalendarEvent
from autoschedule.services.reconciliation import ReconciliationController, RunStatus
from autoschedule.services.scheduler_service import ReconciliationService

from conftest import (
    NOW,
    TestingSessionLocal,
    at,
    create_event_in_db,
    create_task_in_db,
    create_user_in_db,
    day,
    make_task,
)


class CountingSessionFactory:
    def __init__(self, factory=TestingSessionLocal):
        self.factory = factory
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.factory()


@pytest.fixture
def user(db_session):
    return create_user_in_db(db_session, username="ada")


@pytest.fixture
def sessions():
    return CountingSessionFactory()


@pytest.fixture
def controller(user, fake_scheduler, clock, sessions):
    controller = ReconciliationController(
        user.id,
        fake_scheduler,
        session_factory=sessions,
        debounce_seconds=1,
        throttle_seconds=5,
        clock=clock,
    )
    controller.start()
    return controller


# ================================
# TRIGGERS
# ================================

def test_notify_arms_single_debounce_job(controller, fake_scheduler, clock):
    controller.notify_change("tasks_changed")
    clock.advance(0.5)
    controller.notify_change("events_changed")

    assert list(fake_scheduler.jobs) == [controller.job_id]
    assert controller.job_id == f"reconcile_debounce_{controller.user_id}"
    job = fake_scheduler.jobs[controller.job_id]
    assert job["args"] == ["events_changed"]
    assert job["trigger"].run_date.replace(tzinfo=None) == clock.now + timedelta(seconds=1)


def test_stopped_controller_ignores_triggers(controller, fake_scheduler):
    controller.notify_change()
    controller.stop()
    assert fake_scheduler.jobs == {}

    controller.on_visibility_regained()
    assert fake_scheduler.jobs == {}


def test_tasks_changed_only_fires_on_relevant_fields(controller, fake_scheduler):
    tasks = [make_task(id=1, planned_duration_minutes=60)]
    controller.on_tasks_changed(tasks)
    assert len(fake_scheduler.add_calls) == 1

    controller.on_tasks_changed([make_task(id=1, planned_duration_minutes=60, description="typo fix")])
    assert len(fake_scheduler.add_calls) == 1

    controller.on_tasks_changed([make_task(id=1, planned_duration_minutes=90)])
    assert len(fake_scheduler.add_calls) == 2


# ================================
# RUNS
# ================================

def test_run_now_applies_and_is_idempotent(db_session, user, controller):
    task = create_task_in_db(db_session, user, title="Essay", planned_duration_minutes=120, due_date=day(2))

    first = controller.run_now()
    assert first.status == RunStatus.APPLIED
    assert len(first.apply.created) == 2

    events = db_session.query(CalendarEvent).order_by(CalendarEvent.start_time).all()
    assert [(e.start_time, e.end_time, e.linked_task_id, e.title) for e in events] == [
        (at(0, 9), at(0, 10), task.id, "Essay"),
        (at(0, 10), at(0, 11), task.id, "Essay"),
    ]

    second = controller.run_now()
    assert second.status == RunStatus.NO_CHANGES


def test_run_replaces_stale_and_keeps_completed(db_session, user, controller):
    task = create_task_in_db(db_session, user, planned_duration_minutes=120, actual_duration_minutes=60, due_date=day(2))
    done = create_event_in_db(db_session, user, at(0, 9), at(0, 10), linked_task_id=task.id, completed_at=NOW)
    stale = create_event_in_db(db_session, user, at(1, 15), at(1, 16), linked_task_id=task.id)

    report = controller.run_now()

    assert report.status == RunStatus.APPLIED
    db_session.expire_all()
    remaining = {e.id: (e.start_time, e.completed_at) for e in db_session.query(CalendarEvent).all()}
    assert done.id in remaining
    assert stale.id not in remaining
    assert sorted(start for start, _ in remaining.values()) == [at(0, 9), at(0, 10)]


def test_explicit_run_ignores_throttle(db_session, user, controller, clock):
    create_task_in_db(db_session, user)
    controller.run_now()
    clock.advance(1)
    assert controller.run_now().status == RunStatus.NO_CHANGES


def test_background_trigger_inside_throttle_is_deferred(controller, fake_scheduler, clock, sessions):
    controller.run_now()
    runs = sessions.calls

    clock.advance(2)
    controller.notify_change()
    fake_scheduler.fire(controller.job_id)

    assert sessions.calls == runs
    deferred = fake_scheduler.jobs[controller.job_id]
    assert deferred["trigger"].run_date.replace(tzinfo=None) == clock.now + timedelta(seconds=3)


def test_single_flight_drops_overlapping_triggers(controller, fake_scheduler, sessions):
    controller._run_lock.acquire()
    try:
        assert controller.run_now().status == RunStatus.BUSY

        controller.notify_change()
        fake_scheduler.fire(controller.job_id)
        assert fake_scheduler.jobs == {}
    finally:
        controller._run_lock.release()
    assert sessions.calls == 0


def test_lightweight_check_skips_full_run_when_snapshot_matches(db_session, user, controller, fake_scheduler, clock, sessions):
    create_task_in_db(db_session, user, planned_duration_minutes=60, due_date=day(1))
    controller.run_now()
    assert controller.snapshot.is_complete
    runs = sessions.calls

    clock.advance(10)
    controller.on_visibility_regained()
    fake_scheduler.fire(controller.job_id)

    assert sessions.calls == runs


def test_lightweight_check_escalates_on_changed_snapshot(db_session, user, controller, fake_scheduler, clock, sessions):
    task = create_task_in_db(db_session, user, planned_duration_minutes=60, due_date=day(1))
    controller.run_now()
    runs = sessions.calls

    task.planned_duration_minutes = 180
    db_session.commit()
    clock.advance(10)
    controller.on_tasks_changed([make_task(id=task.id, user_id=user.id, planned_duration_minutes=180, due_date=day(1))])
    fake_scheduler.fire(controller.job_id)

    assert sessions.calls == runs + 1
    assert controller.last_report.status == RunStatus.APPLIED
    assert db_session.query(CalendarEvent).count() == 3


def test_run_failure_is_recorded_not_raised(user, fake_scheduler, clock):
    def broken_session():
        raise RuntimeError("database unavailable")

    controller = ReconciliationController(user.id, fake_scheduler, session_factory=broken_session, clock=clock)
    controller.start()

    report = controller.run_now()
    assert report.status == RunStatus.FAILED
    assert "database unavailable" in report.error
    assert controller.last_report is report
    assert not controller.is_busy


# ================================
# REGISTRY
# ================================

def test_service_keeps_one_controller_per_user(fake_scheduler):
    service = ReconciliationService(scheduler=fake_scheduler, session_factory=TestingSessionLocal)
    first = service.get_or_create_controller(1)

    assert service.get_or_create_controller(1) is first
    assert fake_scheduler.running

    first.notify_change()
    service.remove_controller(1)
    assert service.get_controller(1) is None
    assert fake_scheduler.jobs == {}

    service.get_or_create_controller(2)
    service.shutdown()
    assert service.controllers == {}
    assert not fake_scheduler.running
