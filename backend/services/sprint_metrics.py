"""Sprint metrics service: fetch issues, aggregate, and cache the results."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from services import aggregator, trend_analyzer
from services.cache import MetricsCache
from services.dates import parse_utc
from services.errors import InvalidTrendWindowError, MetricsError
from services.github_client import GitHubClient
from services.issue_model import dedupe_issues, parse_issues
from services.issue_store import build_source_manager
from services.responses import (
    ExtendedSprintMetrics,
    FixVersionSummary,
    IssueDetail,
    QaTrendResponse,
    SprintMetrics,
    SprintSummary,
)
from services.settings import Settings
from services.sprint_membership import (
    belongs_to_current_sprint,
    group_by_current_sprint,
    group_by_fix_version,
    has_fix_version,
)

logger = logging.getLogger(__name__)

TREND_FETCH_WORKERS = 6


def sort_sprint_summaries(summaries: List[SprintSummary]) -> List[SprintSummary]:
    """Newest end date first, undated sprints last; ties by sprint name, descending."""
    by_name = sorted(summaries, key=lambda s: s.sprint_name, reverse=True)
    dated = [s for s in by_name if parse_utc(s.end_date) is not None]
    undated = [s for s in by_name if parse_utc(s.end_date) is None]
    dated.sort(key=lambda s: parse_utc(s.end_date), reverse=True)
    return dated + undated


class SprintMetricsService:
    """Computes sprint, developer, trend, and fix-version metrics.

    Results are cached per request shape; ``refresh`` drops the cache and
    any issue data held by the sources.
    """

    def __init__(self, settings: Optional[Settings] = None, source=None,
                 github_client: Optional[GitHubClient] = None,
                 cache: Optional[MetricsCache] = None):
        self.settings = settings or Settings()
        self.source = source or build_source_manager(self.settings)
        self.github_client = github_client
        if self.github_client is None and self.settings.github_configured:
            self.github_client = GitHubClient(
                self.settings.github_token,
                self.settings.github_repo_owner,
                self.settings.github_repo_name,
                api_url=self.settings.github_api_url,
            )
        self.cache = cache or MetricsCache(
            ttl_seconds=self.settings.cache_ttl_seconds,
            max_entries=self.settings.cache_max_entries,
        )

    def _parse(self, raw_issues: list) -> list:
        return parse_issues(
            raw_issues,
            story_points_field=self.settings.story_points_field,
            sprint_field=self.settings.sprint_field,
        )

    def _sprint_issues(self, sprint_id) -> list:
        return self._parse(self.source.fetch_issues_for_sprint(sprint_id))

    def _all_issues(self) -> list:
        def compute():
            issues = dedupe_issues(self._parse(self.source.fetch_all_issues()))
            logger.info(f"Loaded {len(issues)} unique issues")
            return issues

        return self.cache.get_or_compute(("issues", "all"), compute)

    def _pr_approval_hours(self) -> list:
        if self.github_client is None:
            return []
        return self.cache.get_or_compute(("github", "approval_hours"),
                                         self.github_client.fetch_approval_hours)

    def get_extended_metrics(self, sprint_id) -> ExtendedSprintMetrics:
        """Sprint metrics plus per-developer metrics for one sprint."""
        sprint_id = str(sprint_id)

        def compute():
            issues = self._sprint_issues(sprint_id)
            logger.info(f"Calculating metrics for sprint {sprint_id} ({len(issues)} issues)")
            return ExtendedSprintMetrics(
                sprint_metrics=aggregator.calculate_sprint_metrics(
                    sprint_id, issues, self._pr_approval_hours()
                ),
                developer_metrics=aggregator.calculate_developer_metrics(issues),
            )

        return self.cache.get_or_compute(("metrics", sprint_id), compute)

    def _validate_trend_window(self, last_n_sprints) -> int:
        maximum = self.settings.max_trend_sprints
        if isinstance(last_n_sprints, bool) or not isinstance(last_n_sprints, int):
            raise InvalidTrendWindowError(last_n_sprints, maximum)
        if last_n_sprints < 1 or last_n_sprints > maximum:
            raise InvalidTrendWindowError(last_n_sprints, maximum)
        return last_n_sprints

    def _trend_point(self, sprint_id: str) -> Optional[SprintMetrics]:
        try:
            issues = self._sprint_issues(sprint_id)
        except MetricsError as e:
            logger.warning(f"Skipping sprint {sprint_id} in QA trend: {e}")
            return None
        return aggregator.calculate_sprint_metrics(sprint_id, issues, [])

    def get_trend(self, last_n_sprints: int) -> QaTrendResponse:
        """QA failure-rate trend over the most recent ``last_n_sprints`` sprints."""
        count = self._validate_trend_window(last_n_sprints)

        def compute():
            sprint_ids = self.source.recent_sprint_ids(count)
            logger.info(f"Calculating QA trend over sprints {sprint_ids}")

            with ThreadPoolExecutor(max_workers=TREND_FETCH_WORKERS) as executor:
                results = list(executor.map(self._trend_point, sprint_ids))

            return trend_analyzer.analyze_metrics([m for m in results if m is not None])

        return self.cache.get_or_compute(("trend", count), compute)

    def get_all_sprint_summaries(self) -> List[SprintSummary]:
        def compute():
            grouped = group_by_current_sprint(self._all_issues())
            summaries = [aggregator.summarize_sprint(name, issues) for name, issues in grouped.items()]
            return sort_sprint_summaries([s for s in summaries if s is not None])

        return self.cache.get_or_compute(("summaries", "sprints"), compute)

    def get_sprint_summary(self, sprint_name: str) -> Optional[SprintSummary]:
        issues = [i for i in self._all_issues() if belongs_to_current_sprint(i, sprint_name)]
        return aggregator.summarize_sprint(sprint_name, issues)

    def get_sprint_issues(self, sprint_name: str) -> List[IssueDetail]:
        issues = [i for i in self._all_issues() if belongs_to_current_sprint(i, sprint_name)]
        return aggregator.deduplicated_issue_details(issues)

    def get_all_fix_version_summaries(self) -> List[FixVersionSummary]:
        def compute():
            grouped = group_by_fix_version(self._all_issues())
            summaries = [
                aggregator.summarize_fix_version(name, issues)
                for name, issues in sorted(grouped.items())
            ]
            return [s for s in summaries if s is not None]

        return self.cache.get_or_compute(("summaries", "fix_versions"), compute)

    def get_fix_version_summary(self, version_name: str) -> Optional[FixVersionSummary]:
        issues = [i for i in self._all_issues() if has_fix_version(i, version_name)]
        return aggregator.summarize_fix_version(version_name, issues)

    def get_fix_version_issues(self, version_name: str) -> List[IssueDetail]:
        issues = [i for i in self._all_issues() if has_fix_version(i, version_name)]
        return aggregator.deduplicated_issue_details(issues)

    def get_status(self) -> dict:
        return {
            "activeSource": self.source.name,
            "sources": self.source.availability(),
            "jiraConfigured": self.settings.jira_configured,
            "githubConfigured": self.github_client is not None,
            "cacheEntries": len(self.cache),
        }

    def refresh(self) -> None:
        logger.info("Clearing cached metrics and issue data")
        self.cache.invalidate()
        self.source.clear()
