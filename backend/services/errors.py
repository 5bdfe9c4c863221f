"""Exceptions raised by the metrics services."""

from typing import Optional


class MetricsError(Exception):
    """Base class for metrics service errors."""


class DataUnavailableError(MetricsError):
    """Issue or PR data could not be fetched from an upstream source."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class SprintNotFoundError(DataUnavailableError):
    """The active data source has no data for the requested sprint."""

    def __init__(self, sprint_id, source: Optional[str] = None):
        super().__init__(f"Sprint {sprint_id} not found", source)
        self.sprint_id = sprint_id


class InvalidTrendWindowError(ValueError, MetricsError):
    """Requested number of sprints for a trend is out of range."""

    def __init__(self, requested, maximum: int):
        super().__init__(
            f"lastNSprints must be between 1 and {maximum}, got {requested}"
        )
        self.requested = requested
        self.maximum = maximum
