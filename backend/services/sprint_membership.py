"""Sprint and fix-version grouping of issues."""

from typing import Iterable, Optional

from services.issue_model import Issue, SprintRef


def extract_sprints(issue: Issue) -> tuple:
    """Sprint associations in source order: first is earliest, last is most recent."""
    return issue.sprints


def current_sprint(issue: Issue) -> Optional[SprintRef]:
    sprints = extract_sprints(issue)
    return sprints[-1] if sprints else None


def belongs_to_current_sprint(issue: Issue, sprint_name: str) -> bool:
    sprint = current_sprint(issue)
    return sprint is not None and sprint.name == sprint_name


def has_fix_version(issue: Issue, version_name: str) -> bool:
    return version_name in issue.fix_versions


def group_by_current_sprint(issues: Iterable[Issue]) -> dict:
    """Map sprint name -> issues whose most recent sprint has that name.

    An issue is counted once, under its current sprint only. Issues with no
    sprint association are left out.
    """
    grouped = {}
    for issue in issues:
        sprint = current_sprint(issue)
        if sprint is None:
            continue
        grouped.setdefault(sprint.name, []).append(issue)
    return grouped


def group_by_fix_version(issues: Iterable[Issue]) -> dict:
    """Map fix version -> issues tagged with it. An issue may appear under several."""
    grouped = {}
    for issue in issues:
        for version in issue.fix_versions:
            grouped.setdefault(version, []).append(issue)
    return grouped


def sprint_info(issues: Iterable[Issue], sprint_name: str) -> Optional[SprintRef]:
    """Find the sprint record with this name on the first issue that carries it."""
    for issue in issues:
        for sprint in extract_sprints(issue):
            if sprint.name == sprint_name:
                return sprint
    return None
