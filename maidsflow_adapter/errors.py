"""Exception taxonomy for occurrence generation and backend calls."""
from __future__ import annotations


class MaidsFlowError(Exception):
    """Base class for adapter errors."""


class InvalidDateError(MaidsFlowError, ValueError):
    """A date string could not be resolved to a calendar date."""

    def __init__(self, value: str | None):
        self.value = value
        super().__init__(f"Invalid date: {value!r}")


class InvalidTimeError(MaidsFlowError, ValueError):
    """A time-of-day string is not a valid HH:mm value."""

    def __init__(self, value: str | None):
        self.value = value
        super().__init__(f"Invalid time of day: {value!r}")


class InvalidTimeWindowError(MaidsFlowError, ValueError):
    pass


class RecurrenceRuleError(MaidsFlowError, ValueError):
    pass


class MaidsFlowAPIError(MaidsFlowError):
    """Non-2xx response from the MaidsFlow REST API."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP error! status: {status_code}, message: {body or 'Unknown error'}")
