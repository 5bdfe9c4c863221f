"""GitHub client for pull request approval times."""

import logging
import re
from typing import Optional

import requests

from services.dates import parse_datetime
from services.jira_client import build_session

logger = logging.getLogger(__name__)

JIRA_KEY_PATTERN = re.compile(r"[A-Z]+-\d+")
MAX_PRS_TO_FETCH = 100


def references_jira_issue(title: Optional[str]) -> bool:
    return bool(title) and JIRA_KEY_PATTERN.search(title) is not None


def approval_hours_between(created_at: Optional[str], submitted_at: Optional[str]) -> Optional[float]:
    """Hours from PR creation to approval, counted in whole minutes."""
    created = parse_datetime(created_at)
    approved = parse_datetime(submitted_at)
    if created is None or approved is None:
        return None

    try:
        minutes = int((approved - created).total_seconds() / 60)
    except TypeError:
        return None
    return minutes / 60.0


class GitHubClient:
    """Reads recent pull requests and their reviews from one repository."""

    def __init__(self, token: str, owner: str, repo: str,
                 api_url: str = "https://api.github.com",
                 session: Optional[requests.Session] = None, timeout: int = 30):
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.session = session or build_session(headers=headers)

    def _get(self, endpoint: str, params: Optional[dict] = None):
        response = self.session.get(f"{self.api_url}{endpoint}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _fetch_pull_requests(self) -> list:
        try:
            prs = self._get(
                f"/repos/{self.owner}/{self.repo}/pulls",
                params={
                    "state": "all",
                    "per_page": MAX_PRS_TO_FETCH,
                    "sort": "created",
                    "direction": "desc",
                },
            )
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Failed to fetch pull requests for {self.owner}/{self.repo}: {e}")
            return []

        logger.debug(f"Fetched {len(prs or [])} pull requests from GitHub")
        return prs or []

    def _fetch_reviews(self, pr_number: int) -> list:
        try:
            return self._get(f"/repos/{self.owner}/{self.repo}/pulls/{pr_number}/reviews") or []
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Failed to fetch reviews for PR #{pr_number}: {e}")
            return []

    def approval_hours_for(self, pr: dict) -> Optional[float]:
        """Hours until the first APPROVED review, or None if never approved."""
        reviews = self._fetch_reviews(pr.get("number"))
        first_approval = next(
            (r for r in reviews if (r.get("state") or "").upper() == "APPROVED"),
            None,
        )
        if first_approval is None:
            return None

        hours = approval_hours_between(pr.get("created_at"), first_approval.get("submitted_at"))
        if hours is None:
            logger.warning(f"Could not parse approval dates for PR #{pr.get('number')}")
        else:
            logger.debug(f"PR #{pr.get('number')}: approval time = {hours} hours")
        return hours

    def fetch_approval_hours(self) -> list:
        """Approval hours for recent PRs whose title references a Jira issue."""
        logger.info(f"Fetching PR approval hours from {self.owner}/{self.repo}")

        approval_hours = []
        for pr in self._fetch_pull_requests():
            if not references_jira_issue(pr.get("title")):
                continue
            hours = self.approval_hours_for(pr)
            if hours is not None:
                approval_hours.append(hours)

        logger.info(f"Calculated approval hours for {len(approval_hours)} PRs")
        return approval_hours
