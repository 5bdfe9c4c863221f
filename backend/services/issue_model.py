"""Normalized issue model built from Jira REST payloads."""

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusTransition:
    """A single changelog item (usually a status change)."""

    created: Optional[str]
    field: Optional[str]
    from_value: Optional[str]
    to_value: Optional[str]

    @property
    def is_status_change(self) -> bool:
        return (self.field or "").lower() == "status"


@dataclass(frozen=True)
class SprintRef:
    """A sprint association record from the sprint custom field."""

    id: Optional[int]
    name: str
    state: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    complete_date: Optional[str] = None
    board_id: Optional[int] = None
    goal: Optional[str] = None


@dataclass(frozen=True)
class Issue:
    """An issue snapshot plus its ordered sprint and status history."""

    key: str
    summary: str = ""
    issue_type: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    assignee: Optional[str] = None
    story_points: Optional[float] = None
    sprints: tuple = ()
    transitions: tuple = ()
    fix_versions: tuple = ()

    @property
    def status_transitions(self) -> tuple:
        return tuple(t for t in self.transitions if t.is_status_change)


def coerce_number(value: Any) -> Optional[float]:
    """Convert a dynamically typed custom field value to a float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _coerce_int(value: Any) -> Optional[int]:
    number = coerce_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _name_of(value: Any, attr: str = "name") -> Optional[str]:
    """Read ``value[attr]`` from a nested Jira object like ``{"name": "Bug"}``."""
    if isinstance(value, dict):
        name = value.get(attr)
        return str(name) if name is not None else None
    return None


def custom_field(raw_issue: dict, field_name: str) -> Any:
    """Return a raw field value by configured field id, or None when absent."""
    fields = raw_issue.get("fields") if isinstance(raw_issue, dict) else None
    if not isinstance(fields, dict) or not field_name:
        return None
    return fields.get(field_name)


def _parse_sprints(value: Any) -> tuple:
    if not isinstance(value, list):
        return ()

    sprints = []
    for entry in value:
        if not isinstance(entry, dict) or not entry.get("name"):
            continue
        sprints.append(SprintRef(
            id=_coerce_int(entry.get("id")),
            name=str(entry["name"]),
            state=entry.get("state"),
            start_date=entry.get("startDate"),
            end_date=entry.get("endDate"),
            complete_date=entry.get("completeDate"),
            board_id=_coerce_int(entry.get("boardId")),
            goal=entry.get("goal"),
        ))
    return tuple(sprints)


def _parse_fix_versions(value: Any) -> tuple:
    if not isinstance(value, list):
        return ()

    versions = []
    for entry in value:
        name = _name_of(entry)
        if name and name not in versions:
            versions.append(name)
    return tuple(versions)


def _parse_transitions(raw: dict) -> tuple:
    changelog = raw.get("changelog")
    if not isinstance(changelog, dict):
        return ()
    histories = changelog.get("histories")
    if not isinstance(histories, list):
        return ()

    transitions = []
    for history in histories:
        if not isinstance(history, dict):
            continue
        items = history.get("items")
        if not isinstance(items, list):
            continue
        for item in items:
            if not isinstance(item, dict):
                continue
            transitions.append(StatusTransition(
                created=history.get("created"),
                field=item.get("field"),
                from_value=item.get("fromString"),
                to_value=item.get("toString"),
            ))
    return tuple(transitions)


def parse_issue(raw: dict, story_points_field: str, sprint_field: str) -> Issue:
    """Build an Issue from a Jira issue dict (fields + expanded changelog).

    Missing or unexpected field shapes degrade to absent values.
    """
    fields = raw.get("fields")
    if not isinstance(fields, dict):
        fields = {}

    return Issue(
        key=str(raw["key"]),
        summary=fields.get("summary") or "",
        issue_type=_name_of(fields.get("issuetype")),
        status=_name_of(fields.get("status")),
        priority=_name_of(fields.get("priority")),
        assignee=_name_of(fields.get("assignee"), "displayName"),
        story_points=coerce_number(custom_field(raw, story_points_field)),
        sprints=_parse_sprints(custom_field(raw, sprint_field)),
        transitions=_parse_transitions(raw),
        fix_versions=_parse_fix_versions(fields.get("fixVersions")),
    )


def parse_issues(raws: Iterable[Any], story_points_field: str, sprint_field: str) -> list:
    """Parse a list of raw issues, skipping entries without a key."""
    issues = []
    for raw in raws:
        if not isinstance(raw, dict) or not raw.get("key"):
            logger.warning(f"Skipping malformed issue entry: {str(raw)[:80]}")
            continue
        issues.append(parse_issue(raw, story_points_field, sprint_field))
    return issues


def dedupe_issues(issues: Iterable[Issue]) -> list:
    """Drop repeated issue keys, keeping the first occurrence in order."""
    seen = {}
    for issue in issues:
        seen.setdefault(issue.key, issue)
    return list(seen.values())
