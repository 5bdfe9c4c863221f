"""Status and type predicates shared by every aggregation.

All checks are case-insensitive. A missing type, status, or changelog makes a
predicate return False.
"""

from services.issue_model import Issue

COMPLETED_STATUSES = frozenset({"done", "completed", "closed"})

IN_PROGRESS_STATUSES = frozenset({
    "in progress", "in review", "qa", "ready for test", "blocked",
})

QA_OR_BEYOND_STATUSES = frozenset({
    "qa", "ready for test", "ready for merge", "monitoring",
    "completed", "done", "closed",
})

# Subset of QA_OR_BEYOND_STATUSES, so reached_done implies reached_qa_or_beyond
DONE_STATUSES = frozenset({
    "completed", "ready for merge", "monitoring", "done", "closed",
})

QA_TESTED_MARKERS = ("qa", "testing")
QA_FAILURE_MARKERS = ("qa failed", "failed qa", "rejected")


def _lower(value) -> str:
    return value.lower() if isinstance(value, str) else ""


def _has_type(issue: Issue, type_name: str) -> bool:
    return _lower(issue.issue_type) == type_name


def is_bug(issue: Issue) -> bool:
    return _has_type(issue, "bug")


def is_story(issue: Issue) -> bool:
    return _has_type(issue, "story")


def is_task(issue: Issue) -> bool:
    return _has_type(issue, "task")


def is_sub_task(issue: Issue) -> bool:
    return _has_type(issue, "sub-task")


def is_completed(issue: Issue) -> bool:
    return _lower(issue.status) in COMPLETED_STATUSES


def is_in_progress(issue: Issue) -> bool:
    return _lower(issue.status) in IN_PROGRESS_STATUSES


def _status_targets(issue: Issue):
    """Lowercased to-values of every status transition, in order."""
    for transition in issue.status_transitions:
        if isinstance(transition.to_value, str):
            yield transition.to_value.lower()


def _ever_reached(issue: Issue, statuses: frozenset) -> bool:
    if _lower(issue.status) in statuses:
        return True
    return any(target in statuses for target in _status_targets(issue))


def reached_qa_or_beyond(issue: Issue) -> bool:
    """Dev delivery: the issue is, or ever was, in QA or a later status."""
    return _ever_reached(issue, QA_OR_BEYOND_STATUSES)


def reached_done(issue: Issue) -> bool:
    """QA delivery: the issue is, or ever was, in a done-like status."""
    return _ever_reached(issue, DONE_STATUSES)


def was_qa_tested(issue: Issue) -> bool:
    return any(
        marker in target
        for target in _status_targets(issue)
        for marker in QA_TESTED_MARKERS
    )


def had_qa_failure(issue: Issue) -> bool:
    """True if any status transition moved the issue to a failed/rejected QA state."""
    return any(
        marker in target
        for target in _status_targets(issue)
        for marker in QA_FAILURE_MARKERS
    )
