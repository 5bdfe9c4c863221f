"""Tests for SprintMetricsService."""

import json
from unittest.mock import Mock

import pytest

from services.cache import MetricsCache
from services.errors import DataUnavailableError, InvalidTrendWindowError, SprintNotFoundError
from services.github_client import GitHubClient
from services.issue_store import ExportFileSource, IssueSourceManager
from services.settings import Settings
from services.sprint_metrics import SprintMetricsService, sort_sprint_summaries


@pytest.fixture
def source(raw_issues):
    source = Mock(spec=IssueSourceManager)
    source.name = "Sprint Database"
    source.fetch_all_issues.return_value = raw_issues
    source.fetch_issues_for_sprint.return_value = raw_issues
    source.availability.return_value = {"Sprint Database": True}
    return source


@pytest.fixture
def github_client():
    client = Mock(spec=GitHubClient)
    client.fetch_approval_hours.return_value = [1.0, 3.0, 8.0]
    return client


@pytest.fixture
def service(settings, source, github_client):
    return SprintMetricsService(settings, source=source, github_client=github_client)


class TestInit:
    """Test collaborator wiring."""

    def test_builds_default_collaborators(self, settings):
        service = SprintMetricsService(settings)

        assert isinstance(service.source, IssueSourceManager)
        assert isinstance(service.cache, MetricsCache)
        assert service.cache.ttl_seconds == 60
        assert service.github_client is None

    def test_builds_github_client_when_configured(self, tmp_path):
        settings = Settings(github_token="t", github_repo_owner="acme", github_repo_name="shop",
                            data_dir=str(tmp_path))

        service = SprintMetricsService(settings)

        assert service.github_client.owner == "acme"
        assert service.github_client.repo == "shop"


class TestExtendedMetrics:
    """Test per-sprint metrics."""

    def test_sprint_and_developer_metrics(self, service, source):
        result = service.get_extended_metrics("100")

        source.fetch_issues_for_sprint.assert_called_once_with("100")
        metrics = result.sprint_metrics
        assert metrics.sprint_id == "100"
        assert metrics.total_issues == 3
        assert metrics.qa_failures == 1
        assert metrics.qa_failure_rate == pytest.approx(33.333, rel=1e-4)
        assert metrics.velocity == 5.0
        assert metrics.p1_bugs == 1
        assert metrics.average_pr_approval_hours == 4.0
        assert metrics.median_pr_approval_hours == 3.0
        assert [d.developer_name for d in result.developer_metrics] == ["Alice", "Bob"]

    def test_cached_per_sprint(self, service, source, github_client):
        service.get_extended_metrics("100")
        service.get_extended_metrics(100)
        service.get_extended_metrics("101")

        assert source.fetch_issues_for_sprint.call_count == 2
        assert github_client.fetch_approval_hours.call_count == 1

    def test_without_github(self, settings, source):
        service = SprintMetricsService(settings, source=source)

        metrics = service.get_extended_metrics("100").sprint_metrics

        assert metrics.average_pr_approval_hours == 0

    def test_fetch_failure_propagates(self, service, source):
        source.fetch_issues_for_sprint.side_effect = DataUnavailableError("jira down")

        with pytest.raises(DataUnavailableError):
            service.get_extended_metrics("100")

    def test_to_dict_shape(self, service):
        data = service.get_extended_metrics("100").to_dict()

        assert set(data) == {"sprintMetrics", "developerMetrics"}
        assert data["sprintMetrics"]["qaFailureRate"] == 33.33
        assert data["developerMetrics"][0]["developerName"] == "Alice"


class TestTrend:
    """Test QA trend over recent sprints."""

    @pytest.mark.parametrize("window", [0, -1, 11, True, "5", None])
    def test_rejects_invalid_window(self, service, source, window):
        with pytest.raises(InvalidTrendWindowError):
            service.get_trend(window)
        source.recent_sprint_ids.assert_not_called()

    def test_trend_over_recent_sprints(self, service, source):
        source.recent_sprint_ids.return_value = ["100", "101"]
        clean = {"key": "PROJ-9", "fields": {"issuetype": {"name": "Story"}}}
        failed = {"key": "PROJ-8", "fields": {}, "changelog": {"histories": [
            {"items": [{"field": "status", "fromString": "QA", "toString": "QA Failed"}]},
        ]}}
        source.fetch_issues_for_sprint.side_effect = lambda sprint_id: {
            "100": [clean, clean | {"key": "PROJ-7"}],
            "101": [failed, clean],
        }[sprint_id]

        trend = service.get_trend(2)

        source.recent_sprint_ids.assert_called_once_with(2)
        assert [p.sprint_id for p in trend.sprint_qa_data] == ["100", "101"]
        assert trend.change_percentage == 50.0
        assert trend.trend_direction == "UP"
        assert trend.latest_failure_rate == 50.0

    def test_skips_sprints_that_fail(self, service, source):
        source.recent_sprint_ids.return_value = ["100", "101"]

        def fetch(sprint_id):
            if sprint_id == "100":
                raise SprintNotFoundError(sprint_id)
            return []

        source.fetch_issues_for_sprint.side_effect = fetch

        trend = service.get_trend(2)

        assert [p.sprint_id for p in trend.sprint_qa_data] == ["101"]

    def test_malformed_changelog_does_not_abort_trend(self, settings, tmp_path, raw_sprint_1, raw_sprint_2):
        issues = [
            {"key": "PROJ-1", "fields": {"customfield_10020": [raw_sprint_1]},
             "changelog": {"histories": ["oops"]}},
            {"key": "PROJ-2", "fields": {"customfield_10020": [raw_sprint_2]}, "changelog": {"histories": [
                {"items": [{"field": "status", "fromString": "QA", "toString": "QA Failed"}]},
            ]}},
        ]
        (tmp_path / "jira-export-1.json").write_text(json.dumps({"issues": issues}))
        service = SprintMetricsService(settings, source=IssueSourceManager([ExportFileSource(str(tmp_path))]))

        trend = service.get_trend(2)

        assert [p.sprint_id for p in trend.sprint_qa_data] == ["100", "101"]
        assert trend.latest_failure_rate == 100.0

    def test_no_sprints_is_stable(self, service, source):
        source.recent_sprint_ids.return_value = []

        trend = service.get_trend(3)

        assert trend.trend_direction == "STABLE"
        assert trend.sprint_qa_data == []

    def test_cached_per_window(self, service, source):
        source.recent_sprint_ids.return_value = []

        service.get_trend(3)
        service.get_trend(3)
        service.get_trend(4)

        assert source.recent_sprint_ids.call_count == 2


class TestSprintSummaries:
    """Test sprint summaries and issue listings."""

    def test_grouped_by_current_sprint(self, service):
        summaries = service.get_all_sprint_summaries()

        assert [s.sprint_name for s in summaries] == ["Sprint 2", "Sprint 1"]
        assert summaries[0].total_issues == 1
        assert summaries[1].total_issues == 1

    def test_single_sprint_matches_rollup(self, service):
        summary = service.get_sprint_summary("Sprint 1")
        rollup = {s.sprint_name: s for s in service.get_all_sprint_summaries()}["Sprint 1"]

        assert summary == rollup

    def test_unknown_sprint_is_none(self, service):
        assert service.get_sprint_summary("Sprint 99") is None

    def test_sprint_issues(self, service):
        issues = service.get_sprint_issues("Sprint 2")

        assert [i.key for i in issues] == ["PROJ-2"]
        assert issues[0].priority == "Highest"

    def test_all_issues_loaded_once(self, service, source):
        service.get_all_sprint_summaries()
        service.get_sprint_summary("Sprint 1")
        service.get_fix_version_issues("1.0")

        source.fetch_all_issues.assert_called_once()


class TestSortSprintSummaries:

    def make(self, name, end_date):
        summary = Mock()
        summary.sprint_name = name
        summary.end_date = end_date
        return summary

    def test_end_dates_compared_across_offsets(self):
        summaries = [
            self.make("Sprint 1", "2024-01-15T02:00:00.000Z"),
            self.make("Sprint 2", "2024-01-14T23:00:00.000-0500"),
        ]

        assert [s.sprint_name for s in sort_sprint_summaries(summaries)] == ["Sprint 2", "Sprint 1"]

    def test_end_date_desc_then_undated_then_name_desc(self):
        summaries = [
            self.make("Sprint A", ""),
            self.make("Sprint 1", "2024-01-14T00:00:00.000Z"),
            self.make("Sprint B", ""),
            self.make("Sprint 2", "2024-01-28T00:00:00.000Z"),
            self.make("Sprint 2b", "2024-01-28T00:00:00.000Z"),
        ]

        ordered = sort_sprint_summaries(summaries)

        assert [s.sprint_name for s in ordered] == ["Sprint 2b", "Sprint 2", "Sprint 1", "Sprint B", "Sprint A"]


class TestFixVersionSummaries:

    def test_sorted_by_name(self, service):
        summaries = service.get_all_fix_version_summaries()

        assert [s.version_name for s in summaries] == ["1.0", "1.1"]
        assert summaries[0].total_issues == 2
        assert summaries[1].total_issues == 1

    def test_single_version(self, service):
        assert service.get_fix_version_summary("1.1").total_bugs == 1
        assert service.get_fix_version_summary("9.9") is None

    def test_version_issues(self, service):
        assert [i.key for i in service.get_fix_version_issues("1.0")] == ["PROJ-2", "PROJ-1"]


class TestStatusAndRefresh:

    def test_status(self, service):
        service.get_all_sprint_summaries()

        status = service.get_status()

        assert status["activeSource"] == "Sprint Database"
        assert status["sources"] == {"Sprint Database": True}
        assert status["githubConfigured"] is True
        assert status["jiraConfigured"] is False
        assert status["cacheEntries"] == 2

    def test_refresh_clears_cache_and_sources(self, service, source):
        service.get_all_sprint_summaries()

        service.refresh()
        service.get_all_sprint_summaries()

        source.clear.assert_called_once()
        assert source.fetch_all_issues.call_count == 2
