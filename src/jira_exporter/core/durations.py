"""Time-in-status calculation from an issue changelog."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from jira_exporter.core.data_models import HistoryEntry
from jira_exporter.core.errors import ChangelogError

logger = logging.getLogger(__name__)


def compute_status_durations(
    created: datetime | None,
    histories: Sequence[HistoryEntry],
    issue_key: str = "",
) -> dict[str, timedelta]:
    """Return the total time spent in every status the issue has left.

    *histories* is expected newest first, as the Jira API returns it; it is
    walked oldest first without mutating the caller's sequence.  Each status
    change closes the interval that started at the previous status change
    (or at *created*) and credits it to the status being left.  The current
    status is still open and is therefore not measured.

    Raises :class:`ChangelogError` when a status change has a non-string
    ``from`` value or when a timestamp needed for the interval is missing.
    """
    durations: dict[str, timedelta] = {}
    cursor = created
    total = len(histories)

    for offset, entry in enumerate(reversed(histories)):
        status_items = entry.status_items
        if not status_items:
            continue
        # Index into the list as received, so logs match the raw payload.
        index = total - 1 - offset
        if entry.created is None:
            raise ChangelogError(issue_key, index, "history entry has no timestamp")
        if cursor is None:
            raise ChangelogError(issue_key, index, "issue has no creation timestamp")
        if (entry.created.tzinfo is None) != (cursor.tzinfo is None):
            raise ChangelogError(issue_key, index, "timestamp has no UTC offset")

        for item in status_items:
            exited = item.from_string
            if not isinstance(exited, str):
                raise ChangelogError(
                    issue_key, index,
                    f"status 'from' value is {type(exited).__name__}, expected str",
                )
            durations[exited] = durations.get(exited, timedelta(0)) + (entry.created - cursor)
            cursor = entry.created

    logger.debug("Issue %s: durations for %d status(es)", issue_key, len(durations))
    return durations
