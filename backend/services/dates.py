"""Date parsing for Jira and GitHub timestamps."""

from datetime import datetime, timezone
from typing import Optional

# Jira: "2024-10-31T12:11:56.289-0400", GitHub: "2024-10-31T16:11:56Z"
DATETIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a timestamp string, returning None if no known format matches."""
    if not value or not isinstance(value, str):
        return None

    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue

    return None


def parse_utc(value: Optional[str]) -> Optional[datetime]:
    """Like parse_datetime, but always timezone-aware. Naive timestamps are taken as UTC."""
    parsed = parse_datetime(value)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
