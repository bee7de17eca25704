"""
Applies a ScheduleDiff through the calendar event service.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..exceptions import PartialBatchFailure
from ..scheduling.algorithms.diff import ScheduleDiff
from ..schemas import BatchCreateResult, BatchDeleteResult, CalendarEventCreate

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_TITLE = "Scheduled task"


@dataclass
class ApplyReport:
    created: List[BatchCreateResult] = field(default_factory=list)
    deleted: List[BatchDeleteResult] = field(default_factory=list)
    failed_creates: List[BatchCreateResult] = field(default_factory=list)
    failed_deletes: List[BatchDeleteResult] = field(default_factory=list)
    deletes_skipped: bool = False

    @property
    def degraded(self) -> bool:
        return bool(self.failed_creates or self.failed_deletes or self.deletes_skipped)

    def raise_for_failures(self):
        if self.failed_creates or self.failed_deletes:
            raise PartialBatchFailure(len(self.failed_creates), len(self.failed_deletes))


def apply_schedule_diff(
    diff: ScheduleDiff,
    event_service,
    user_id: int,
    titles: Optional[Dict[int, str]] = None,
) -> ApplyReport:
    """
    Create first, then delete. If any creation fails the deletions are skipped,
    so the calendar never loses coverage it had. Created events are kept.
    """
    report = ApplyReport()
    if diff.is_empty:
        return report

    titles = titles or {}
    delete_ids = diff.delete_ids()

    if diff.to_create:
        events_in = [
            CalendarEventCreate(
                user_id=user_id,
                title=titles.get(block.task_id, DEFAULT_BLOCK_TITLE),
                start_time=block.start,
                end_time=block.end,
                linked_task_id=block.task_id,
            )
            for block in diff.to_create
        ]
        for result in event_service.create_calendar_events_batch(events_in, exclude_event_ids=delete_ids):
            if result.success:
                report.created.append(result)
            else:
                report.failed_creates.append(result)

    if report.failed_creates:
        report.deletes_skipped = bool(delete_ids)
        logger.warning(
            f"{len(report.failed_creates)} of {len(diff.to_create)} event(s) for user {user_id} "
            f"could not be created; skipping {len(delete_ids)} deletion(s)"
        )
        return report

    if delete_ids:
        for result in event_service.delete_calendar_events_batch(delete_ids):
            if result.success:
                report.deleted.append(result)
            else:
                report.failed_deletes.append(result)
                logger.warning(f"Could not delete event {result.id} for user {user_id}: {result.error}")

    logger.info(
        f"Applied schedule for user {user_id}: {len(report.created)} created, {len(report.deleted)} deleted"
    )
    return report
