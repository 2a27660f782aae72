"""Prometheus metric collections built from Jira issues.

A :class:`MetricsSnapshot` holds one refresh cycle worth of metrics in its own
registry.  The :class:`Aggregator` builds a fresh snapshot per cycle and
publishes it with a single reference swap, so scrapes served through
:class:`SnapshotCollector` always see one complete cycle.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable, Iterator
from datetime import timedelta

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from jira_exporter.core.data_models import COUNT_LABELS, DURATION_LABELS, JiraIssue
from jira_exporter.core.durations import compute_status_durations
from jira_exporter.core.errors import ChangelogError

logger = logging.getLogger(__name__)

ISSUE_COUNT_METRIC = "jira_issue_count"
TIME_IN_STATUS_METRIC = "jira_issue_time_in_status"

# 1s .. 10^7s (about 115 days), 8 exponential buckets.
TIME_IN_STATUS_BUCKETS: tuple[float, ...] = tuple(10.0**i for i in range(8))


class MetricsSnapshot:
    """Issue counts and time-in-status observations for one refresh cycle."""

    def __init__(self) -> None:
        self.registry = CollectorRegistry()
        self.issue_count = Gauge(
            ISSUE_COUNT_METRIC,
            "Count of Jira issues by various labels.",
            COUNT_LABELS,
            registry=self.registry,
        )
        self.time_in_status = Histogram(
            TIME_IN_STATUS_METRIC,
            "Time spent by issues in each status.",
            DURATION_LABELS,
            buckets=TIME_IN_STATUS_BUCKETS,
            registry=self.registry,
        )
        self.issues = 0
        self.observations = 0
        self.failed_keys: list[str] = []

    def record_issue_snapshot(self, issue: JiraIssue) -> None:
        """Count *issue* under its current project/priority/status/... labels."""
        self.issue_count.labels(*issue.count_labels()).inc()
        self.issues += 1

    def record_durations(self, issue: JiraIssue, durations: dict[str, timedelta]) -> None:
        """Observe each per-status duration (seconds) under the issue's labels."""
        if not durations:
            return
        child = self.time_in_status.labels(*issue.duration_labels())
        for duration in durations.values():
            child.observe(duration.total_seconds())
            self.observations += 1

    def record_issue(self, issue: JiraIssue) -> bool:
        """Record the count and durations for *issue*.

        A malformed changelog only drops the issue's durations; the count is
        kept.  Returns False in that case.
        """
        self.record_issue_snapshot(issue)
        try:
            durations = compute_status_durations(issue.created, issue.histories, issue.key)
        except ChangelogError as exc:
            logger.warning("Skipping time-in-status for %s: %s", issue.key, exc)
            self.failed_keys.append(issue.key)
            return False
        self.record_durations(issue, durations)
        return True

    def collect(self) -> Iterator[Metric]:
        return self.registry.collect()


class Aggregator:
    """Owns the published :class:`MetricsSnapshot` and replaces it atomically."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current = MetricsSnapshot()

    @property
    def current(self) -> MetricsSnapshot:
        """Return the currently published snapshot."""
        with self._lock:
            return self._current

    def publish(self, snapshot: MetricsSnapshot) -> None:
        with self._lock:
            self._current = snapshot

    def reset(self) -> None:
        """Publish an empty snapshot.

        For operator use only.  The refresh loop never calls this, so a
        failed cycle leaves the last good snapshot published.
        """
        logger.debug("Resetting published metrics")
        self.publish(MetricsSnapshot())

    def rebuild(self, issues: Iterable[JiraIssue]) -> MetricsSnapshot:
        """Build a snapshot from *issues* and publish it once complete."""
        snapshot = MetricsSnapshot()
        for issue in issues:
            snapshot.record_issue(issue)
        self.publish(snapshot)
        logger.debug(
            "Published snapshot: %d issues, %d observations, %d changelog errors",
            snapshot.issues, snapshot.observations, len(snapshot.failed_keys),
        )
        return snapshot


class SnapshotCollector(Collector):
    """Expose the aggregator's current snapshot through a long-lived registry."""

    def __init__(self, aggregator: Aggregator) -> None:
        self._aggregator = aggregator

    def collect(self) -> Iterable[Metric]:
        return self._aggregator.current.collect()


class ExporterStats:
    """Self-monitoring metrics about the refresh loop."""

    def __init__(self, registry: CollectorRegistry) -> None:
        self.refreshes = Counter(
            "jira_exporter_refresh",
            "Refresh cycles by result.",
            ["result"],
            registry=registry,
        )
        self.refresh_duration = Gauge(
            "jira_exporter_refresh_duration_seconds",
            "Duration of the last successful refresh cycle.",
            registry=registry,
        )
        self.last_success = Gauge(
            "jira_exporter_last_refresh_success_timestamp_seconds",
            "Unix time of the last successful refresh cycle.",
            registry=registry,
        )
        self.issue_errors = Counter(
            "jira_exporter_issue_errors",
            "Issues whose changelog could not be reduced to status durations.",
            registry=registry,
        )
        # Export both series from the start.
        self.refreshes.labels("success")
        self.refreshes.labels("failure")

    def record_success(self, elapsed: float, issue_errors: int) -> None:
        self.refreshes.labels("success").inc()
        self.refresh_duration.set(elapsed)
        self.last_success.set(time.time())
        if issue_errors:
            self.issue_errors.inc(issue_errors)

    def record_failure(self) -> None:
        self.refreshes.labels("failure").inc()
