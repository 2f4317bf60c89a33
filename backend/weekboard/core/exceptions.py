"""Error kinds raised by the weekly task engine and its repositories."""
from typing import Any


class WeekboardError(Exception):
    """Base exception for engine errors."""
    pass


class NotFoundError(WeekboardError):
    """Task or week reference does not resolve."""
    pass


class ConflictError(WeekboardError):
    """Unique-key violation that an upsert should have absorbed."""
    pass


class InvalidDateError(WeekboardError):
    """Week lookup was given something that is not a usable date."""
    pass


class ValidationError(WeekboardError):
    """Input rejected before touching storage."""
    pass


class PartialBatchFailure(WeekboardError):
    """A rollover or migration finished with one or more failed items."""

    def __init__(self, summary: Any):
        self.summary = summary
        failed = len(summary.failures)
        super().__init__(f"{failed} item(s) failed during {summary.operation}")
