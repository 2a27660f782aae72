"""Jira search client using the ``jira`` library."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from typing import Any

import requests
from jira import JIRA, JIRAError

from jira_exporter.core.data_models import JiraIssue, parse_issue
from jira_exporter.core.errors import FetchError

logger = logging.getLogger(__name__)

_MAX_RESULTS = 100
_MAX_RETRIES = 4
_BACKOFF_BASE = 1.0  # seconds
_FIELDS = "created,status,assignee,project,issuetype,priority"
_EXPAND = "changelog"


class JiraClient:
    """Fetch the issues of a set of projects updated within a time window."""

    def __init__(
        self,
        url: str,
        user: str,
        api_token: str,
        projects: Sequence[str],
        analyze_period_days: int = 90,
    ) -> None:
        self._url = url.rstrip("/")
        self._user = user
        self._api_token = api_token
        self._projects = tuple(projects)
        self._analyze_period_days = analyze_period_days
        self._jira: JIRA | None = None
        self._connect_lock = threading.Lock()

    # -- query ----------------------------------------------------------------

    def build_jql(self) -> str:
        """Return the JQL filter for the configured projects and window."""
        return (
            f"updated >= -{self._analyze_period_days}d"
            f" AND project in ({', '.join(self._projects)})"
        )

    # -- fetching -------------------------------------------------------------

    def fetch_page(self, start_at: int = 0) -> list[dict[str, Any]]:
        """Return one page of raw issues (with changelog) starting at *start_at*.

        Raises :class:`FetchError` on any network, HTTP or body failure.
        """
        logger.debug("Fetching Jira data starting from %d", start_at)
        try:
            result = self._search_with_retry(self.build_jql(), start_at=start_at)
        except JIRAError as exc:
            raise FetchError(
                f"Jira search failed at startAt={start_at}: HTTP {exc.status_code} {exc.text}"
            ) from exc
        except requests.RequestException as exc:
            raise FetchError(f"Jira search failed at startAt={start_at}: {exc}") from exc

        issues = result.get("issues") if isinstance(result, dict) else None
        if not isinstance(issues, list):
            raise FetchError(f"Malformed search response at startAt={start_at}: no issues array")
        return issues

    def fetch_all(self) -> list[JiraIssue]:
        """Fetch and parse every matching issue, page by page until an empty page."""
        issues: list[JiraIssue] = []
        start = 0
        while True:
            page = self.fetch_page(start)
            if not page:
                break
            for raw in page:
                if not isinstance(raw, dict):
                    logger.warning("Ignoring malformed issue entry at startAt=%d", start)
                    continue
                try:
                    issues.append(parse_issue(raw))
                except (AttributeError, TypeError, ValueError) as exc:
                    logger.warning("Skipping unparsable issue %s: %s", raw.get("key"), exc)
            start += len(page)
        logger.debug("Fetched %d issues for %s", len(issues), ", ".join(self._projects))
        return issues

    def check_ready(self) -> bool:
        """Return True when the first page of the query can be fetched."""
        try:
            self.fetch_page(0)
        except Exception as exc:
            logger.error("Readiness check failed: %s", exc)
            return False
        return True

    # -- internals ------------------------------------------------------------

    def _connection(self) -> JIRA:
        with self._connect_lock:
            if self._jira is None:
                logger.debug("Connecting to Jira at %s (basic auth)", self._url)
                self._jira = JIRA(server=self._url, basic_auth=(self._user, self._api_token))
                logger.info("Connected to Jira (%s)", self._url)
            return self._jira

    def _search_with_retry(
        self, jql: str, *, start_at: int = 0, max_results: int = _MAX_RESULTS
    ) -> Any:
        """Execute a JQL search with exponential backoff on 429."""
        jira = self._connection()
        for attempt in range(_MAX_RETRIES):
            try:
                return jira.search_issues(
                    jql,
                    startAt=start_at,
                    maxResults=max_results,
                    fields=_FIELDS,
                    expand=_EXPAND,
                    json_result=True,
                )
            except JIRAError as exc:
                if exc.status_code == 429 and attempt < _MAX_RETRIES - 1:
                    delay = _BACKOFF_BASE * (2**attempt)
                    logger.warning("Rate limited, retrying in %.1fs", delay)
                    time.sleep(delay)
                    continue
                raise

        return {}  # unreachable, but satisfies type checker
