"""Runtime configuration loaded from the environment (and an optional .env file)."""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    """Read an integer setting, falling back to the default on bad input."""
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


def _get_list(env: Mapping[str, str], name: str, default: tuple) -> tuple:
    raw = env.get(name)
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Connection details and tuning knobs for the metrics service."""

    jira_base_url: str = ""
    jira_email: str = ""
    jira_api_token: str = ""
    jira_project_key: str = ""
    jira_board_id: Optional[int] = None
    story_points_field: str = "customfield_10016"
    sprint_field: str = "customfield_10020"

    github_token: str = ""
    github_repo_owner: str = ""
    github_repo_name: str = ""
    github_api_url: str = "https://api.github.com"

    data_dir: str = "tools"
    cache_ttl_seconds: int = 600
    cache_max_entries: int = 100
    max_trend_sprints: int = 10

    log_level: str = "INFO"
    cors_origins: tuple = field(default=DEFAULT_CORS_ORIGINS)

    @property
    def jira_configured(self) -> bool:
        return all([self.jira_base_url, self.jira_email,
                    self.jira_api_token, self.jira_project_key])

    @property
    def github_configured(self) -> bool:
        return all([self.github_token, self.github_repo_owner, self.github_repo_name])


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables.

    When ``env`` is omitted, a ``.env`` file in the working directory is loaded
    first (existing variables win) and ``os.environ`` is used.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    board_id = _get_int(env, "JIRA_BOARD_ID", 0)

    return Settings(
        jira_base_url=env.get("JIRA_BASE_URL", "").rstrip("/"),
        jira_email=env.get("JIRA_EMAIL", ""),
        jira_api_token=env.get("JIRA_API_TOKEN", ""),
        jira_project_key=env.get("JIRA_PROJECT_KEY", ""),
        jira_board_id=board_id or None,
        story_points_field=env.get("JIRA_STORY_POINTS_FIELD") or "customfield_10016",
        sprint_field=env.get("JIRA_SPRINT_FIELD") or "customfield_10020",
        github_token=env.get("GITHUB_TOKEN", ""),
        github_repo_owner=env.get("GITHUB_REPO_OWNER", ""),
        github_repo_name=env.get("GITHUB_REPO_NAME", ""),
        github_api_url=(env.get("GITHUB_API_URL") or "https://api.github.com").rstrip("/"),
        data_dir=env.get("METRICS_DATA_DIR") or "tools",
        cache_ttl_seconds=_get_int(env, "METRICS_CACHE_TTL_SECONDS", 600),
        cache_max_entries=_get_int(env, "METRICS_CACHE_MAX_ENTRIES", 100),
        max_trend_sprints=_get_int(env, "METRICS_MAX_TREND_SPRINTS", 10),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        cors_origins=_get_list(env, "CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
    )
