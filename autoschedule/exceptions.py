"""
Error taxonomy for the scheduling engine.
"""


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling engine."""


class NotFoundError(SchedulingError):
    """A task, schedule or project lookup found nothing."""


class ValidationError(SchedulingError):
    """An event was rejected at the boundary (bad interval or overlap)."""


class OverlapError(ValidationError):
    """An event would intersect another event of the same user."""


class TransientIOError(SchedulingError):
    """The backing store failed while a run was in progress."""


class PartialBatchFailure(SchedulingError):
    """Some items of a create/delete batch failed."""

    def __init__(self, failed_creates: int, failed_deletes: int):
        self.failed_creates = failed_creates
        self.failed_deletes = failed_deletes
        super().__init__(
            f"{failed_creates} event creation(s) and {failed_deletes} deletion(s) failed"
        )
