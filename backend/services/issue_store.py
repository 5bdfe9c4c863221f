"""Issue sources: the sprint database file, Jira export files, and the Jira API.

Sources hand back raw Jira-shaped issue dicts. Parsing into ``Issue`` objects
happens in the metrics service, which knows the configured custom fields.
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import List, Optional

from services.dates import parse_utc
from services.errors import DataUnavailableError, SprintNotFoundError
from services.jira_client import JiraClient, dedupe_raw_issues

logger = logging.getLogger(__name__)

SPRINT_DATABASE_FILE = "jira-sprint-database.json"
EXPORT_FILE_PREFIX = "jira-export-"

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def _load_json(path: str, source: str):
    try:
        with open(path, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DataUnavailableError(f"Failed to read {path}: {e}", source=source) from e


def _sprint_entries(raw_issue: dict, sprint_field: str) -> list:
    fields = raw_issue.get("fields")
    if not isinstance(fields, dict):
        return []
    value = fields.get(sprint_field)
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, dict)]


def _sprint_changelog_names(raw_issue: dict) -> set:
    """Sprint names an issue was ever moved into, from its Sprint changelog items.

    A changelog value lists every sprint the issue belonged to after the change,
    comma separated.
    """
    changelog = raw_issue.get("changelog")
    histories = changelog.get("histories") if isinstance(changelog, dict) else None
    if not isinstance(histories, list):
        return set()

    names = set()
    for history in histories:
        items = history.get("items") if isinstance(history, dict) else None
        if not isinstance(items, list):
            continue
        for item in items:
            if not isinstance(item, dict):
                continue
            field = item.get("field")
            value = item.get("toString")
            if isinstance(field, str) and field.lower() == "sprint" and isinstance(value, str):
                names.update(part.strip() for part in value.split(",") if part.strip())
    return names


def _most_recent(sprints: List[dict], count: int) -> List[str]:
    """Ids of the ``count`` latest-ending sprints, oldest first.

    Sprints with no end date sort before dated ones, keeping their input order.
    """
    def key(sprint):
        end = parse_utc(sprint.get("endDate"))
        return (0, _UNDATED) if end is None else (1, end)

    ordered = sorted(sprints, key=key)
    return [str(s["id"]) for s in ordered[-count:]] if count > 0 else []


class SprintDatabaseSource:
    """Read-only view of the sprint database file.

    The file maps sprint id to that sprint's issues:
    ``{"created", "lastUpdated", "sprints": {id: {"sprintName", "startDate",
    "endDate", "issues": [...]}}}``. It is loaded once and kept in memory until
    ``clear`` is called.
    """

    name = "Sprint Database"

    def __init__(self, path: str):
        self.path = path
        self._sprints = None
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return os.path.isfile(self.path)

    def _load(self) -> dict:
        with self._lock:
            if self._sprints is not None:
                return self._sprints

            logger.info(f"Loading sprint database from {self.path}")
            root = _load_json(self.path, self.name)
            sprints = root.get("sprints") if isinstance(root, dict) else None
            if not isinstance(sprints, dict):
                raise DataUnavailableError(f"No sprints found in {self.path}", source=self.name)

            loaded = {}
            for sprint_id, sprint_data in sprints.items():
                if not isinstance(sprint_data, dict):
                    logger.warning(f"Skipping malformed sprint entry {sprint_id}")
                    continue
                issues = sprint_data.get("issues")
                loaded[str(sprint_id)] = {
                    "sprintName": sprint_data.get("sprintName"),
                    "startDate": sprint_data.get("startDate"),
                    "endDate": sprint_data.get("endDate"),
                    "issues": [i for i in issues if isinstance(i, dict)] if isinstance(issues, list) else [],
                }

            total = sum(len(s["issues"]) for s in loaded.values())
            logger.info(
                f"Loaded {len(loaded)} sprints with {total} issues "
                f"(created {root.get('created')}, last updated {root.get('lastUpdated')})"
            )
            self._sprints = loaded
            return loaded

    def fetch_all_issues(self) -> list:
        issues = []
        for sprint in self._load().values():
            issues.extend(sprint["issues"])
        return dedupe_raw_issues(issues)

    def fetch_issues_for_sprint(self, sprint_id) -> list:
        sprints = self._load()
        sprint = sprints.get(str(sprint_id))
        if sprint is None:
            logger.warning(f"Sprint {sprint_id} not in database. Available: {sorted(sprints)}")
            raise SprintNotFoundError(sprint_id, source=self.name)

        logger.info(f"Loaded {len(sprint['issues'])} issues for sprint {sprint_id} from database")
        return list(sprint["issues"])

    def recent_sprint_ids(self, count: int) -> List[str]:
        sprints = [{"id": sprint_id, "endDate": data["endDate"]}
                   for sprint_id, data in self._load().items()]
        return _most_recent(sprints, count)

    def clear(self) -> None:
        logger.info("Clearing sprint database cache")
        with self._lock:
            self._sprints = None


class ExportFileSource:
    """Issues from the newest ``jira-export-*.json`` file in a directory."""

    name = "Jira Export File"

    def __init__(self, directory: str, sprint_field: str = "customfield_10020"):
        self.directory = directory
        self.sprint_field = sprint_field
        self._issues = None
        self._lock = threading.Lock()

    def latest_export_file(self) -> Optional[str]:
        """Newest export by file name; names carry the export timestamp."""
        if not os.path.isdir(self.directory):
            return None
        exports = sorted(
            name for name in os.listdir(self.directory)
            if name.startswith(EXPORT_FILE_PREFIX) and name.endswith(".json")
        )
        return os.path.join(self.directory, exports[-1]) if exports else None

    def is_available(self) -> bool:
        return self.latest_export_file() is not None

    def _load(self) -> list:
        with self._lock:
            if self._issues is not None:
                return self._issues

            path = self.latest_export_file()
            if path is None:
                raise DataUnavailableError(f"No export files found in {self.directory}", source=self.name)

            logger.info(f"Loading Jira export from {path}")
            data = _load_json(path, self.name)
            issues = data.get("issues") if isinstance(data, dict) else data
            if not isinstance(issues, list):
                raise DataUnavailableError(f"No issues found in {path}", source=self.name)

            self._issues = dedupe_raw_issues([i for i in issues if isinstance(i, dict)])
            logger.info(f"Loaded {len(self._issues)} issues from {os.path.basename(path)}")
            return self._issues

    def _in_sprint(self, raw_issue: dict, sprint_id: str) -> bool:
        for entry in _sprint_entries(raw_issue, self.sprint_field):
            if str(entry.get("id")) == sprint_id or entry.get("name") == sprint_id:
                return True
        return sprint_id in _sprint_changelog_names(raw_issue)

    def fetch_all_issues(self) -> list:
        return list(self._load())

    def fetch_issues_for_sprint(self, sprint_id) -> list:
        sprint_id = str(sprint_id)
        return [issue for issue in self._load() if self._in_sprint(issue, sprint_id)]

    def recent_sprint_ids(self, count: int) -> List[str]:
        sprints = {}
        for issue in self._load():
            for entry in _sprint_entries(issue, self.sprint_field):
                if entry.get("id") is not None:
                    sprints.setdefault(str(entry["id"]), entry)
        return _most_recent(list(sprints.values()), count)

    def clear(self) -> None:
        logger.info("Clearing export file cache")
        with self._lock:
            self._issues = None


class JiraApiSource:
    """Live issues from the Jira REST API."""

    name = "Jira API"

    def __init__(self, client: Optional[JiraClient], board_id: Optional[int] = None):
        self.client = client
        self.board_id = board_id

    def is_available(self) -> bool:
        return self.client is not None

    def _require_client(self) -> JiraClient:
        if self.client is None:
            raise DataUnavailableError("Jira API credentials are not configured", source=self.name)
        return self.client

    def fetch_all_issues(self) -> list:
        return self._require_client().fetch_all_issues()

    def fetch_issues_for_sprint(self, sprint_id) -> list:
        return self._require_client().fetch_issues_for_sprint(sprint_id)

    def recent_sprint_ids(self, count: int) -> List[str]:
        client = self._require_client()
        if self.board_id is None:
            raise DataUnavailableError("JIRA_BOARD_ID is required to list sprints", source=self.name)
        return _most_recent(client.list_closed_sprints(self.board_id), count)

    def clear(self) -> None:
        pass


class IssueSourceManager:
    """Delegates to the first available source in priority order."""

    def __init__(self, sources: list):
        self.sources = list(sources)

    @property
    def name(self) -> str:
        source = self.find_active_source()
        return source.name if source else "None"

    def find_active_source(self):
        for source in self.sources:
            if source.is_available():
                return source
        return None

    def active_source(self):
        source = self.find_active_source()
        if source is None:
            names = ", ".join(s.name for s in self.sources)
            raise DataUnavailableError(f"No issue source available (tried: {names})")
        logger.debug(f"Using issue source: {source.name}")
        return source

    def is_available(self) -> bool:
        return self.find_active_source() is not None

    def availability(self) -> dict:
        return {source.name: source.is_available() for source in self.sources}

    def fetch_all_issues(self) -> list:
        return self.active_source().fetch_all_issues()

    def fetch_issues_for_sprint(self, sprint_id) -> list:
        return self.active_source().fetch_issues_for_sprint(sprint_id)

    def recent_sprint_ids(self, count: int) -> List[str]:
        return self.active_source().recent_sprint_ids(count)

    def clear(self) -> None:
        for source in self.sources:
            source.clear()


def build_source_manager(settings) -> IssueSourceManager:
    """Database file, then export file, then the live API."""
    client = None
    if settings.jira_configured:
        client = JiraClient(
            settings.jira_base_url,
            settings.jira_email,
            settings.jira_api_token,
            settings.jira_project_key,
        )

    return IssueSourceManager([
        SprintDatabaseSource(os.path.join(settings.data_dir, SPRINT_DATABASE_FILE)),
        ExportFileSource(settings.data_dir, sprint_field=settings.sprint_field),
        JiraApiSource(client, board_id=settings.jira_board_id),
    ])
