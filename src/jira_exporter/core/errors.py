"""Exception hierarchy for the Jira exporter."""

from __future__ import annotations


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigError(ExporterError):
    """A required setting is missing or has an invalid value."""


class FetchError(ExporterError):
    """Fetching issues from Jira failed (network, HTTP status or body)."""


class ChangelogError(ExporterError):
    """An issue's changelog cannot be reduced to status durations.

    Raised per issue; callers skip the issue's duration contribution and
    carry on with the rest of the batch.
    """

    def __init__(self, issue_key: str, entry_index: int, reason: str) -> None:
        super().__init__(f"{issue_key or '<unknown>'}: history entry {entry_index}: {reason}")
        self.issue_key = issue_key
        self.entry_index = entry_index
        self.reason = reason
