"""
Error taxonomy for the scheduling engine.
"""


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling engine."""


class EstimationUnavailable(SchedulingError):
    """The travel-time estimator could not produce an estimate for a leg."""


class MalformedActivity(SchedulingError):
    """An activity batch is missing required fields or is internally inconsistent."""

    def __init__(self, message: str, activity_id: str | None = None) -> None:
        super().__init__(message)
        self.activity_id = activity_id


class InvalidFixError(SchedulingError):
    """A requested auto-fix refers to an unknown or non-fixable conflict."""

    def __init__(self, message: str, conflict_ids: list[str] | None = None) -> None:
        super().__init__(message)
        self.conflict_ids = conflict_ids or []
