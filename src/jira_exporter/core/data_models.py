"""Data models for Jira issues as returned by the search API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dateutil.parser import parse as dt_parse

logger = logging.getLogger(__name__)

STATUS_FIELD = "status"

COUNT_LABELS: tuple[str, ...] = (
    "project",
    "priority",
    "status",
    "statusCategory",
    "assignee",
    "issueType",
)
# Status is intentionally not a duration dimension.
DURATION_LABELS: tuple[str, ...] = ("project", "priority", "assignee", "issueType")


@dataclass
class ChangeItem:
    """One field change inside a changelog history entry.

    ``from_string`` keeps the raw JSON value (``str``, ``None`` or anything
    else); it is checked by the duration reducer, never coerced here.
    """

    field: str
    from_string: object = None

    @property
    def is_status_change(self) -> bool:
        return self.field == STATUS_FIELD


@dataclass
class HistoryEntry:
    """A changelog history entry: a timestamp and the fields it changed."""

    created: datetime | None
    items: list[ChangeItem] = field(default_factory=list)

    @property
    def status_items(self) -> list[ChangeItem]:
        return [item for item in self.items if item.is_status_change]


@dataclass
class JiraIssue:
    """A Jira issue with the fields used as metric labels and its changelog."""

    key: str
    created: datetime | None
    project: str = ""
    priority: str = ""
    assignee: str = ""
    status: str = ""
    status_category: str = ""
    issue_type: str = ""
    # Newest first, as returned by the API.
    histories: list[HistoryEntry] = field(default_factory=list)

    def count_labels(self) -> tuple[str, ...]:
        """Label values in :data:`COUNT_LABELS` order."""
        return (
            self.project,
            self.priority,
            self.status,
            self.status_category,
            self.assignee,
            self.issue_type,
        )

    def duration_labels(self) -> tuple[str, ...]:
        """Label values in :data:`DURATION_LABELS` order."""
        return (self.project, self.priority, self.assignee, self.issue_type)


# -- parsing ------------------------------------------------------------------


def parse_issue(raw: dict[str, Any]) -> JiraIssue:
    """Build a :class:`JiraIssue` from one element of the search ``issues`` array."""
    fields = _as_dict(raw.get("fields"))
    status = _as_dict(fields.get("status"))
    histories = _as_dict(raw.get("changelog")).get("histories")
    if not isinstance(histories, list):
        histories = []

    return JiraIssue(
        key=str(raw.get("key") or ""),
        created=parse_timestamp(fields.get("created")),
        project=_nested(fields, "project", "key"),
        priority=_nested(fields, "priority", "name"),
        assignee=_nested(fields, "assignee", "emailAddress"),
        status=_nested(fields, "status", "name"),
        status_category=_nested(status, "statusCategory", "name"),
        issue_type=_nested(fields, "issuetype", "name"),
        histories=[_parse_history(h) for h in histories if isinstance(h, dict)],
    )


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a Jira timestamp such as ``2024-01-15T10:30:00.000+0000``."""
    if value is None:
        return None
    try:
        return dt_parse(str(value))
    except (ValueError, TypeError, OverflowError):
        logger.debug("Unparsable timestamp %r", value)
        return None


def _parse_history(raw: dict[str, Any]) -> HistoryEntry:
    raw_items = raw.get("items")
    items = [
        ChangeItem(field=str(it.get("field") or ""), from_string=it.get("fromString"))
        for it in (raw_items if isinstance(raw_items, list) else [])
        if isinstance(it, dict)
    ]
    return HistoryEntry(created=parse_timestamp(raw.get("created")), items=items)


def _nested(obj: dict[str, Any], key: str, attr: str) -> str:
    """Return ``obj[key][attr]`` as a string, or ``""`` when any level is missing."""
    inner = obj.get(key)
    if not isinstance(inner, dict):
        return ""
    value = inner.get(attr)
    return str(value) if value is not None else ""


def _as_dict(value: Any) -> dict[str, Any]:
    """Return *value* if it is a JSON object, else an empty dict."""
    return value if isinstance(value, dict) else {}
