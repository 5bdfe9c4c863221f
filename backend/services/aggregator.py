"""Sprint, fix-version, and developer aggregations over normalized issues.

Every function here is pure and total: an empty issue list yields zeroed
metrics (or None for group summaries that need at least one issue), never an
exception.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from services import status_classifier as sc
from services.dates import parse_datetime
from services.issue_model import Issue, dedupe_issues
from services.responses import (
    DeveloperMetrics,
    FixVersionSummary,
    IssueDetail,
    SprintMetrics,
    SprintSummary,
)
from services.sprint_membership import sprint_info
from services.stats import average, median, percentage

logger = logging.getLogger(__name__)

PRIORITY_BUCKETS = {"highest": "p1", "high": "p2", "medium": "p3", "low": "p4"}


def _empty_buckets() -> dict:
    return {"p1": 0, "p2": 0, "p3": 0, "p4": 0}


def _points(issue: Issue) -> float:
    return issue.story_points if issue.story_points is not None else 0.0


@dataclass
class GroupTally:
    """Counts and sums over one group of issues."""

    total: int = 0
    bugs: int = 0
    stories: int = 0
    tasks: int = 0
    sub_tasks: int = 0
    completed: int = 0
    delivered_stories: int = 0
    dev_delivered_stories: int = 0
    qa_delivered_stories: int = 0
    qa_tested: int = 0
    qa_failed: int = 0
    in_progress: int = 0
    velocity: float = 0.0
    committed_story_points: float = 0.0
    completed_points: float = 0.0
    bug_priorities: dict = field(default_factory=_empty_buckets)
    issue_priorities: dict = field(default_factory=_empty_buckets)

    @property
    def other(self) -> int:
        return self.total - self.bugs - self.stories - self.tasks - self.sub_tasks

    @property
    def completion_percentage(self) -> float:
        return percentage(self.completed, self.total)

    @property
    def delivery_percentage(self) -> float:
        return percentage(self.delivered_stories, self.stories)

    @property
    def dev_delivery_percentage(self) -> float:
        return percentage(self.dev_delivered_stories, self.stories)

    @property
    def qa_delivery_percentage(self) -> float:
        return percentage(self.qa_delivered_stories, self.stories)

    @property
    def qa_failure_ratio(self) -> float:
        """QA failures per QA-tested issue."""
        return percentage(self.qa_failed, self.qa_tested)

    @property
    def qa_failure_rate(self) -> float:
        """QA failures per issue in the group."""
        return percentage(self.qa_failed, self.total)

    @property
    def completion_rate(self) -> float:
        return percentage(self.velocity, self.committed_story_points)

    @property
    def bug_density(self) -> float:
        """Bugs per delivered story point."""
        return self.bugs / self.velocity if self.velocity > 0 else 0.0


def tally(issues: Iterable[Issue]) -> GroupTally:
    """Single pass over a group computing everything the summaries need."""
    result = GroupTally()

    for issue in issues:
        result.total += 1
        completed = sc.is_completed(issue)
        story = sc.is_story(issue)
        bug = sc.is_bug(issue)

        if bug:
            result.bugs += 1
        elif story:
            result.stories += 1
        elif sc.is_task(issue):
            result.tasks += 1
        elif sc.is_sub_task(issue):
            result.sub_tasks += 1

        if completed:
            result.completed += 1
            result.completed_points += _points(issue)

        if story:
            result.committed_story_points += _points(issue)
            if completed:
                result.delivered_stories += 1
                result.velocity += _points(issue)
            if sc.reached_qa_or_beyond(issue):
                result.dev_delivered_stories += 1
            if sc.reached_done(issue):
                result.qa_delivered_stories += 1

        if sc.was_qa_tested(issue):
            result.qa_tested += 1
        if sc.had_qa_failure(issue):
            result.qa_failed += 1
        if sc.is_in_progress(issue):
            result.in_progress += 1

        bucket = PRIORITY_BUCKETS.get((issue.priority or "").lower())
        if bucket:
            result.issue_priorities[bucket] += 1
            if bug:
                result.bug_priorities[bucket] += 1

    return result


def sprint_length_days(start_date: Optional[str], end_date: Optional[str]) -> int:
    """Whole days between sprint start and end; 0 if either is missing or unparseable."""
    start = parse_datetime(start_date)
    end = parse_datetime(end_date)
    if start is None or end is None:
        if start_date and end_date:
            logger.warning(f"Failed to parse sprint dates: {start_date!r} - {end_date!r}")
        return 0

    try:
        return int((end - start).total_seconds() / 86400)
    except TypeError as e:
        # naive vs. offset-aware timestamps
        logger.warning(f"Failed to compare sprint dates {start_date!r} - {end_date!r}: {e}")
        return 0


def _group_fields(counts: GroupTally) -> dict:
    return {
        "total_issues": counts.total,
        "total_bugs": counts.bugs,
        "total_stories": counts.stories,
        "total_tasks": counts.tasks,
        "total_sub_tasks": counts.sub_tasks,
        "total_other": counts.other,
        "completed_issues": counts.completed,
        "completion_percentage": counts.completion_percentage,
        "delivered_stories": counts.delivered_stories,
        "delivery_percentage": counts.delivery_percentage,
        "total_qa_tested": counts.qa_tested,
        "qa_failed": counts.qa_failed,
        "qa_failure_ratio": counts.qa_failure_ratio,
        "dev_delivered_stories": counts.dev_delivered_stories,
        "dev_delivery_percentage": counts.dev_delivery_percentage,
        "qa_delivered_stories": counts.qa_delivered_stories,
        "qa_delivery_percentage": counts.qa_delivery_percentage,
        "velocity": counts.velocity,
        "committed_story_points": counts.committed_story_points,
        "completion_rate": counts.completion_rate,
        "bug_density": counts.bug_density,
        "p1_bugs": counts.bug_priorities["p1"],
        "p2_bugs": counts.bug_priorities["p2"],
        "p3_bugs": counts.bug_priorities["p3"],
        "p4_bugs": counts.bug_priorities["p4"],
        "in_progress_issues": counts.in_progress,
    }


def summarize_sprint(sprint_name: str, issues: Sequence[Issue]) -> Optional[SprintSummary]:
    """Summary for the issues grouped under ``sprint_name``, or None if there are none."""
    if not issues:
        return None

    info = sprint_info(issues, sprint_name)
    start_date = info.start_date if info and info.start_date else ""
    end_date = info.end_date if info and info.end_date else ""

    return SprintSummary(
        sprint_name=sprint_name,
        sprint_id=str(info.id) if info and info.id is not None else "unknown",
        start_date=start_date,
        end_date=end_date,
        sprint_length_days=sprint_length_days(start_date, end_date),
        **_group_fields(tally(issues)),
    )


def summarize_fix_version(version_name: str,
                          issues: Sequence[Issue]) -> Optional[FixVersionSummary]:
    if not issues:
        return None
    return FixVersionSummary(version_name=version_name, **_group_fields(tally(issues)))


def calculate_sprint_metrics(sprint_id: str, issues: Sequence[Issue],
                             pr_approval_hours: Sequence[float]) -> SprintMetrics:
    """Sprint metrics with PR approval statistics from GitHub."""
    counts = tally(issues)

    return SprintMetrics(
        sprint_id=str(sprint_id),
        total_issues=counts.total,
        qa_failures=counts.qa_failed,
        qa_failure_rate=counts.qa_failure_rate,
        total_stories=counts.stories,
        delivered_stories=counts.delivered_stories,
        delivered_percentage=counts.delivery_percentage,
        velocity=counts.velocity,
        committed_story_points=counts.committed_story_points,
        completion_rate=counts.completion_rate,
        total_bugs=counts.bugs,
        p1_bugs=counts.bug_priorities["p1"],
        p2_bugs=counts.bug_priorities["p2"],
        p3_bugs=counts.bug_priorities["p3"],
        p4_bugs=counts.bug_priorities["p4"],
        bug_density=counts.bug_density,
        average_pr_approval_hours=average(pr_approval_hours),
        median_pr_approval_hours=median(pr_approval_hours),
    )


def developer_summary(developer_name: str, issues: Sequence[Issue]) -> DeveloperMetrics:
    counts = tally(issues)

    return DeveloperMetrics(
        developer_name=developer_name,
        total_issues=counts.total,
        qa_failures=counts.qa_failed,
        qa_failure_rate=counts.qa_failure_rate,
        story_points_delivered=counts.completed_points,
        total_bugs=counts.bugs,
        p1_issues=counts.issue_priorities["p1"],
        p2_issues=counts.issue_priorities["p2"],
        p3_issues=counts.issue_priorities["p3"],
        p4_issues=counts.issue_priorities["p4"],
        # PR data is not attributed to developers yet
        average_pr_approval_hours=0.0,
    )


def calculate_developer_metrics(issues: Iterable[Issue]) -> List[DeveloperMetrics]:
    """One entry per assignee, sorted by name. Unassigned issues are skipped."""
    by_developer = {}
    for issue in issues:
        if not issue.assignee:
            continue
        by_developer.setdefault(issue.assignee, []).append(issue)

    return [
        developer_summary(name, dev_issues)
        for name, dev_issues in sorted(by_developer.items())
    ]


def to_issue_detail(issue: Issue) -> IssueDetail:
    return IssueDetail(
        key=issue.key,
        summary=issue.summary or "",
        issue_type=issue.issue_type or "Unknown",
        status=issue.status or "Unknown",
        priority=issue.priority or "None",
        assignee=issue.assignee or "Unassigned",
        dev_delivered=sc.reached_qa_or_beyond(issue),
        qa_delivered=sc.reached_done(issue),
    )


def deduplicated_issue_details(issues: Iterable[Issue]) -> List[IssueDetail]:
    """Issue listing with one row per key, sorted by type then key."""
    details = [to_issue_detail(issue) for issue in dedupe_issues(issues)]
    details.sort(key=lambda d: (d.issue_type, d.key))
    return details
