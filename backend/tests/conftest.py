"""Shared fixtures for sprint quality metrics tests."""

import os
import sys
from unittest.mock import Mock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from services.issue_model import Issue, SprintRef, StatusTransition
from services.settings import Settings
from services.sprint_metrics import SprintMetricsService


def status_changes(*to_values, start="To Do"):
    """Build a chain of status transitions ending in the given statuses."""
    transitions = []
    previous = start
    for i, to_value in enumerate(to_values):
        transitions.append(StatusTransition(
            created=f"2024-01-{i + 2:02d}T10:00:00.000+0000",
            field="status",
            from_value=previous,
            to_value=to_value,
        ))
        previous = to_value
    return tuple(transitions)


@pytest.fixture
def make_issue():
    """Factory for Issue objects with sensible defaults."""
    def _make(key="PROJ-1", **kwargs):
        kwargs.setdefault("issue_type", "Story")
        kwargs.setdefault("status", "To Do")
        return Issue(key=key, **kwargs)
    return _make


@pytest.fixture
def sprint_1():
    return SprintRef(
        id=100,
        name="Sprint 1",
        state="closed",
        start_date="2024-01-01T00:00:00.000Z",
        end_date="2024-01-14T00:00:00.000Z",
    )


@pytest.fixture
def sprint_2():
    return SprintRef(
        id=101,
        name="Sprint 2",
        state="closed",
        start_date="2024-01-15T00:00:00.000Z",
        end_date="2024-01-28T00:00:00.000Z",
    )


@pytest.fixture
def raw_sprint_1():
    """Sprint 1 as it appears in the sprint custom field."""
    return {
        "id": 100,
        "name": "Sprint 1",
        "state": "closed",
        "boardId": 7,
        "startDate": "2024-01-01T00:00:00.000Z",
        "endDate": "2024-01-14T00:00:00.000Z",
        "completeDate": "2024-01-14T12:00:00.000Z",
        "goal": "Ship checkout",
    }


@pytest.fixture
def raw_sprint_2():
    return {
        "id": 101,
        "name": "Sprint 2",
        "state": "closed",
        "boardId": 7,
        "startDate": "2024-01-15T00:00:00.000Z",
        "endDate": "2024-01-28T00:00:00.000Z",
    }


@pytest.fixture
def sample_sprints():
    """Closed sprints as returned by the agile board API, newest first."""
    return [
        {
            "id": 103,
            "name": "Sprint 4",
            "state": "closed",
            "startDate": "2024-02-12T00:00:00.000Z",
            "endDate": "2024-02-25T00:00:00.000Z"
        },
        {
            "id": 102,
            "name": "Sprint 3",
            "state": "closed",
            "startDate": "2024-01-29T00:00:00.000Z",
            "endDate": "2024-02-11T00:00:00.000Z"
        },
        {
            "id": 101,
            "name": "Sprint 2",
            "state": "closed",
            "startDate": "2024-01-15T00:00:00.000Z",
            "endDate": "2024-01-28T00:00:00.000Z"
        },
        {
            "id": 100,
            "name": "Sprint 1",
            "state": "closed",
            "startDate": "2024-01-01T00:00:00.000Z",
            "endDate": "2024-01-14T00:00:00.000Z"
        }
    ]


@pytest.fixture
def raw_story_done(raw_sprint_1):
    """Completed story that went through QA."""
    return {
        "key": "PROJ-1",
        "fields": {
            "summary": "Checkout page",
            "issuetype": {"name": "Story"},
            "status": {"name": "Done"},
            "priority": {"name": "High"},
            "assignee": {"displayName": "Alice", "accountId": "a-1"},
            "customfield_10016": 5.0,
            "customfield_10020": [raw_sprint_1],
            "fixVersions": [{"name": "1.0"}],
        },
        "changelog": {
            "histories": [
                {
                    "created": "2024-01-03T10:00:00.000+0000",
                    "items": [{"field": "status", "fromString": "To Do", "toString": "In Progress"}]
                },
                {
                    "created": "2024-01-05T10:00:00.000+0000",
                    "items": [{"field": "status", "fromString": "In Progress", "toString": "QA"}]
                },
                {
                    "created": "2024-01-08T10:00:00.000+0000",
                    "items": [{"field": "status", "fromString": "QA", "toString": "Done"}]
                }
            ]
        }
    }


@pytest.fixture
def raw_bug_qa_failed(raw_sprint_1, raw_sprint_2):
    """Bug that failed QA and was carried over into Sprint 2."""
    return {
        "key": "PROJ-2",
        "fields": {
            "summary": "Card declined twice",
            "issuetype": {"name": "Bug"},
            "status": {"name": "In Progress"},
            "priority": {"name": "Highest"},
            "assignee": {"displayName": "Bob"},
            "customfield_10016": None,
            "customfield_10020": [raw_sprint_1, raw_sprint_2],
            "fixVersions": [{"name": "1.0"}, {"name": "1.1"}],
        },
        "changelog": {
            "histories": [
                {
                    "created": "2024-01-04T10:00:00.000+0000",
                    "items": [
                        {"field": "status", "fromString": "In Progress", "toString": "QA"},
                        {"field": "assignee", "fromString": "Alice", "toString": "Bob"}
                    ]
                },
                {
                    "created": "2024-01-06T10:00:00.000+0000",
                    "items": [{"field": "status", "fromString": "QA", "toString": "QA Failed"}]
                },
                {
                    "created": "2024-01-16T10:00:00.000+0000",
                    "items": [{"field": "status", "fromString": "QA Failed", "toString": "In Progress"}]
                }
            ]
        }
    }


@pytest.fixture
def raw_task_unassigned():
    """Task with no sprint, assignee, or changelog."""
    return {
        "key": "PROJ-3",
        "fields": {
            "summary": "Clean up logs",
            "issuetype": {"name": "Task"},
            "status": {"name": "To Do"},
            "priority": None,
            "assignee": None,
        }
    }


@pytest.fixture
def raw_issues(raw_story_done, raw_bug_qa_failed, raw_task_unassigned):
    return [raw_story_done, raw_bug_qa_failed, raw_task_unassigned]


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at an empty temporary data directory."""
    return Settings(data_dir=str(tmp_path), cache_ttl_seconds=60, max_trend_sprints=10)


@pytest.fixture
def mock_service():
    service = Mock(spec=SprintMetricsService)
    service.settings = Settings()
    return service


@pytest.fixture
def app(mock_service):
    """Create Flask test app backed by a mock metrics service."""
    from app import create_app
    app = create_app(settings=Settings(), service=mock_service)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()
