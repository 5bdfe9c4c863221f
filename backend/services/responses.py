"""Response objects returned by the metrics service.

Values are kept unrounded; ``to_dict`` produces the camelCase JSON shape and
rounds floats for display.
"""

from dataclasses import dataclass, fields
from typing import List


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _serialize(value):
    if isinstance(value, float):
        return round(value, 2)
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class _Serializable:
    def to_dict(self) -> dict:
        return {_camel(f.name): _serialize(getattr(self, f.name)) for f in fields(self)}


@dataclass(frozen=True)
class SprintMetrics(_Serializable):
    """Sprint-level metrics. ``qa_failure_rate`` is relative to total issues."""

    sprint_id: str
    total_issues: int
    qa_failures: int
    qa_failure_rate: float
    total_stories: int
    delivered_stories: int
    delivered_percentage: float
    velocity: float
    committed_story_points: float
    completion_rate: float
    total_bugs: int
    p1_bugs: int
    p2_bugs: int
    p3_bugs: int
    p4_bugs: int
    bug_density: float
    average_pr_approval_hours: float
    median_pr_approval_hours: float


@dataclass(frozen=True)
class DeveloperMetrics(_Serializable):
    """Per-assignee metrics. Priority buckets count all of the developer's issues."""

    developer_name: str
    total_issues: int
    qa_failures: int
    qa_failure_rate: float
    story_points_delivered: float
    total_bugs: int
    p1_issues: int
    p2_issues: int
    p3_issues: int
    p4_issues: int
    average_pr_approval_hours: float


@dataclass(frozen=True)
class ExtendedSprintMetrics(_Serializable):
    sprint_metrics: SprintMetrics
    developer_metrics: List[DeveloperMetrics]


@dataclass(frozen=True)
class SprintSummary(_Serializable):
    """Summary of the issues whose current sprint is ``sprint_name``.

    ``qa_failure_ratio`` is relative to QA-tested issues, not total issues.
    """

    sprint_name: str
    sprint_id: str
    start_date: str
    end_date: str
    sprint_length_days: int
    total_issues: int
    total_bugs: int
    total_stories: int
    total_tasks: int
    total_sub_tasks: int
    total_other: int
    completed_issues: int
    completion_percentage: float
    delivered_stories: int
    delivery_percentage: float
    total_qa_tested: int
    qa_failed: int
    qa_failure_ratio: float
    dev_delivered_stories: int
    dev_delivery_percentage: float
    qa_delivered_stories: int
    qa_delivery_percentage: float
    velocity: float
    committed_story_points: float
    completion_rate: float
    bug_density: float
    p1_bugs: int
    p2_bugs: int
    p3_bugs: int
    p4_bugs: int
    in_progress_issues: int


@dataclass(frozen=True)
class FixVersionSummary(_Serializable):
    """Summary of every issue tagged with ``version_name``."""

    version_name: str
    total_issues: int
    total_bugs: int
    total_stories: int
    total_tasks: int
    total_sub_tasks: int
    total_other: int
    completed_issues: int
    completion_percentage: float
    delivered_stories: int
    delivery_percentage: float
    total_qa_tested: int
    qa_failed: int
    qa_failure_ratio: float
    dev_delivered_stories: int
    dev_delivery_percentage: float
    qa_delivered_stories: int
    qa_delivery_percentage: float
    velocity: float
    committed_story_points: float
    completion_rate: float
    bug_density: float
    p1_bugs: int
    p2_bugs: int
    p3_bugs: int
    p4_bugs: int
    in_progress_issues: int


@dataclass(frozen=True)
class SprintQaData(_Serializable):
    sprint_id: str
    qa_failure_rate: float


@dataclass(frozen=True)
class QaTrendResponse(_Serializable):
    trend_direction: str
    change_percentage: float
    average_failure_rate: float
    latest_failure_rate: float
    sprint_qa_data: List[SprintQaData]


@dataclass(frozen=True)
class IssueDetail(_Serializable):
    """One row of an issue listing."""

    key: str
    summary: str
    issue_type: str
    status: str
    priority: str
    assignee: str
    dev_delivered: bool
    qa_delivered: bool
