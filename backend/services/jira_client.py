"""Jira REST client for issue and sprint data."""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from services.errors import DataUnavailableError

logger = logging.getLogger(__name__)

SEARCH_PAGE_SIZE = 100
SPRINT_PAGE_SIZE = 50


def build_session(auth=None, headers: Optional[dict] = None) -> requests.Session:
    """Session with retries on rate limiting and server errors."""
    session = requests.Session()
    retry_strategy = Retry(
        total=3,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"],
        backoff_factor=1,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({"Accept": "application/json"})
    if headers:
        session.headers.update(headers)
    if auth:
        session.auth = auth
    return session


def dedupe_raw_issues(issues: list) -> list:
    """Drop repeated issue keys from raw Jira payloads, keeping the first."""
    seen = set()
    unique = []
    for issue in issues:
        key = issue.get("key")
        if key in seen:
            continue
        seen.add(key)
        unique.append(issue)
    return unique


class JiraClient:
    """Fetches raw issues (with changelog) and closed sprints from Jira."""

    def __init__(self, server: str, email: str, token: str, project_key: str,
                 session: Optional[requests.Session] = None, timeout: int = 30):
        self.server = server.rstrip("/")
        self.project_key = project_key
        self.timeout = timeout
        self.session = session or build_session(auth=(email, token))

    def _request(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """Make authenticated request to Jira API."""
        try:
            response = self.session.get(
                f"{self.server}{endpoint}",
                params=params,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise DataUnavailableError(f"Jira request to {endpoint} failed: {e}", source="jira") from e

    def search(self, jql: str) -> list:
        """Run a JQL search, following pagination until every match is fetched."""
        all_issues = []
        start_at = 0

        while True:
            data = self._request(
                "/rest/api/3/search",
                params={
                    "jql": jql,
                    "startAt": start_at,
                    "maxResults": SEARCH_PAGE_SIZE,
                    "expand": "changelog",
                },
            )

            issues = data.get("issues", [])
            all_issues.extend(issues)
            total = data.get("total", 0)
            logger.debug(f"Fetched {len(all_issues)}/{total} issues for: {jql}")

            if len(issues) < SEARCH_PAGE_SIZE or len(all_issues) >= total:
                break

            start_at += len(issues)

        unique = dedupe_raw_issues(all_issues)
        logger.info(f"Fetched {len(unique)} issues from Jira for: {jql}")
        return unique

    def fetch_issues_for_sprint(self, sprint_id) -> list:
        return self.search(f"project = {self.project_key} AND sprint = {sprint_id} ORDER BY created ASC")

    def fetch_all_issues(self) -> list:
        return self.search(f"project = {self.project_key} ORDER BY created ASC")

    def list_closed_sprints(self, board_id: int) -> list:
        """Closed sprints of a board, oldest end date first."""
        all_sprints = []
        start_at = 0

        while True:
            data = self._request(
                f"/rest/agile/1.0/board/{board_id}/sprint",
                params={"state": "closed", "startAt": start_at, "maxResults": SPRINT_PAGE_SIZE},
            )

            sprints = data.get("values", [])
            all_sprints.extend(sprints)

            if data.get("isLast", True) or len(sprints) < SPRINT_PAGE_SIZE:
                break

            start_at += SPRINT_PAGE_SIZE

        all_sprints.sort(key=lambda s: s.get("endDate") or "")
        return all_sprints
