"""
Reconciliation controller: keeps one user's calendar in line with the desired schedule.

Background triggers are debounced through a single APScheduler date job per user,
throttled against the start of the previous full run, and serialized by a
non-blocking lock so that at most one run is ever in flight.
"""

import enum
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.date import DateTrigger

from .. import config as settings
from ..database import SessionLocal
from ..scheduling.algorithms.diff import ScheduleDiff, diff_schedule
from ..scheduling.core.scheduler import SchedulePlan, plan_schedule
from ..scheduling.scoring.priority_scoring import RankStrategy
from ..schemas import SchedulingConfig, TaskOut, WorkingHours
from .calendar_event_service import CalendarEventService
from .schedule_applier import ApplyReport, apply_schedule_diff
from .schedule_resolver import ScheduleResolver
from .schedule_service import ScheduleService
from .task_service import TaskService

logger = logging.getLogger(__name__)


class RunStatus(str, enum.Enum):
    APPLIED = "applied"
    NO_CHANGES = "no_changes"
    DEGRADED = "degraded"
    BUSY = "busy"
    FAILED = "failed"


@dataclass
class RunReport:
    status: RunStatus
    trigger: str
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    plan: Optional[SchedulePlan] = None
    diff: Optional[ScheduleDiff] = None
    apply: Optional[ApplyReport] = None
    error: Optional[str] = None


@dataclass
class Snapshot:
    """Last known state of the user's tasks, events and working hours."""
    tasks: Optional[List[TaskOut]] = None
    events: Optional[list] = None
    working_hours: Optional[Dict[int, WorkingHours]] = None

    @property
    def is_complete(self) -> bool:
        if self.tasks is None or self.events is None or self.working_hours is None:
            return False
        return all(task.id in self.working_hours for task in self.tasks)


def task_fingerprint(tasks) -> Tuple:
    """Only the fields that can change what gets scheduled."""
    return tuple(sorted(
        (
            task.id,
            task.planned_duration_minutes,
            task.actual_duration_minutes,
            task.status,
            tuple(task.blocked_by or ()),
            tuple(task.dependencies or ()),
            task.updated_at,
        )
        for task in tasks
    ))


class ReconciliationController:
    def __init__(
        self,
        user_id: int,
        scheduler,
        session_factory=SessionLocal,
        scheduling_config: Optional[SchedulingConfig] = None,
        strategy: Optional[RankStrategy] = None,
        debounce_seconds: float = settings.DEBOUNCE_SECONDS,
        throttle_seconds: float = settings.THROTTLE_SECONDS,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.user_id = user_id
        self.scheduler = scheduler
        self.session_factory = session_factory
        self.scheduling_config = scheduling_config or SchedulingConfig()
        self.strategy = strategy
        self.debounce_seconds = debounce_seconds
        self.throttle_seconds = throttle_seconds
        self.clock = clock

        self.snapshot = Snapshot()
        self.last_report: Optional[RunReport] = None
        self.running = False

        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._last_run_started: Optional[datetime] = None
        self._fingerprint: Optional[Tuple] = None

    @property
    def job_id(self) -> str:
        return f"reconcile_debounce_{self.user_id}"

    # ================================
    # LIFECYCLE
    # ================================

    def start(self):
        self.running = True
        logger.info(f"Reconciliation started for user {self.user_id}")

    def stop(self):
        """Cancel any pending trigger. A run already in flight finishes normally."""
        self.running = False
        try:
            self.scheduler.remove_job(self.job_id)
        except JobLookupError:
            pass
        logger.info(f"Reconciliation stopped for user {self.user_id}")

    @property
    def is_busy(self) -> bool:
        return self._run_lock.locked()

    # ================================
    # TRIGGERS
    # ================================

    def notify_change(self, reason: str = "change"):
        if not self.running:
            logger.debug(f"Ignoring '{reason}' for user {self.user_id}: controller not started")
            return
        self._arm(self.debounce_seconds, reason)

    def on_visibility_regained(self):
        self.notify_change("visibility_regained")

    def on_tasks_changed(self, tasks: List[TaskOut]):
        """Record the new task list and schedule a run if anything relevant moved."""
        fingerprint = task_fingerprint(tasks)
        with self._state_lock:
            changed = fingerprint != self._fingerprint
            self._fingerprint = fingerprint
            self.snapshot.tasks = list(tasks)
        if changed:
            self.notify_change("tasks_changed")

    def update_snapshot(self, tasks=None, events=None, working_hours=None):
        with self._state_lock:
            if tasks is not None:
                self.snapshot.tasks = list(tasks)
                self._fingerprint = task_fingerprint(tasks)
            if events is not None:
                self.snapshot.events = list(events)
            if working_hours is not None:
                self.snapshot.working_hours = dict(working_hours)

    def _arm(self, delay_seconds: float, reason: str):
        run_date = self.clock() + timedelta(seconds=delay_seconds)
        self.scheduler.add_job(
            func=self._on_debounce_fired,
            trigger=DateTrigger(run_date=run_date),
            args=[reason],
            id=self.job_id,
            replace_existing=True,
            name=f"Reconcile schedule for user {self.user_id}",
        )

    def throttle_remaining(self) -> float:
        if self._last_run_started is None:
            return 0.0
        elapsed = (self.clock() - self._last_run_started).total_seconds()
        return max(0.0, self.throttle_seconds - elapsed)

    def _on_debounce_fired(self, reason: str):
        if not self.running:
            return
        remaining = self.throttle_remaining()
        if remaining > 0:
            logger.debug(f"Throttled '{reason}' for user {self.user_id}; retrying in {remaining:.1f}s")
            self._arm(remaining, reason)
            return
        if self.is_busy:
            logger.info(f"Dropped '{reason}' for user {self.user_id}: a run is already in flight")
            return
        try:
            needed = self.needs_full_run()
        except Exception:
            logger.exception(f"Snapshot check failed for user {self.user_id}; running a full reconciliation")
            needed = True
        if not needed:
            logger.debug(f"Snapshot for user {self.user_id} already matches the desired schedule")
            return
        self._run(reason)

    # ================================
    # RUNS
    # ================================

    def needs_full_run(self) -> bool:
        """Plan against the snapshot; a full run is needed unless the diff is empty."""
        with self._state_lock:
            snapshot = Snapshot(self.snapshot.tasks, self.snapshot.events, self.snapshot.working_hours)
        if not snapshot.is_complete:
            return True
        plan = plan_schedule(
            snapshot.tasks,
            snapshot.events,
            snapshot.working_hours,
            self.scheduling_config,
            self.strategy,
            self.clock(),
        )
        return not diff_schedule(plan.desired_blocks(), snapshot.events).is_empty

    def run_now(self) -> RunReport:
        """Fetch and reconcile immediately, ignoring the throttle."""
        return self._run("run_now")

    def _run(self, trigger: str) -> RunReport:
        if not self._run_lock.acquire(blocking=False):
            logger.info(f"Run '{trigger}' for user {self.user_id} dropped: another run is in flight")
            return RunReport(status=RunStatus.BUSY, trigger=trigger)

        started_at = self.clock()
        self._last_run_started = started_at
        try:
            report = self._reconcile(trigger, started_at)
        except Exception as e:
            logger.exception(f"Reconciliation run for user {self.user_id} failed")
            report = RunReport(status=RunStatus.FAILED, trigger=trigger, started_at=started_at, error=str(e))
        finally:
            self._run_lock.release()

        report.finished_at = self.clock()
        self.last_report = report
        return report

    def _reconcile(self, trigger: str, started_at: datetime) -> RunReport:
        db = self.session_factory()
        try:
            task_service = TaskService(db)
            event_service = CalendarEventService(db)
            resolver = ScheduleResolver(ScheduleService(db), task_service)

            tasks = task_service.get_tasks(self.user_id)
            events = event_service.get_calendar_events(self.user_id)
            working_hours = resolver.resolve_many(tasks, started_at)
            self.update_snapshot(tasks, events, working_hours)

            plan = plan_schedule(
                tasks, events, working_hours, self.scheduling_config, self.strategy, started_at
            )
            diff = diff_schedule(plan.desired_blocks(), events)
            if diff.is_empty:
                logger.info(f"Schedule for user {self.user_id} already up to date")
                return RunReport(RunStatus.NO_CHANGES, trigger, started_at, plan=plan, diff=diff)

            applied = apply_schedule_diff(diff, event_service, self.user_id, plan.titles())
            self.update_snapshot(events=event_service.get_calendar_events(self.user_id))
            status = RunStatus.DEGRADED if applied.degraded else RunStatus.APPLIED
            return RunReport(status, trigger, started_at, plan=plan, diff=diff, apply=applied)
        finally:
            db.close()
