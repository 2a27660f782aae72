"""Background refresh loop: fetch issues, rebuild and publish metrics."""

from __future__ import annotations

import logging
import threading
import time

from jira_exporter.core.errors import FetchError
from jira_exporter.core.jira_client import JiraClient
from jira_exporter.core.metrics import Aggregator, ExporterStats

logger = logging.getLogger(__name__)


class Poller:
    """Refresh the aggregator from Jira every *refresh_period* seconds.

    A failed cycle keeps the previously published snapshot and the loop
    tries again after the next period.
    """

    def __init__(
        self,
        client: JiraClient,
        aggregator: Aggregator,
        refresh_period: float,
        stats: ExporterStats | None = None,
    ) -> None:
        self._client = client
        self._aggregator = aggregator
        self._refresh_period = refresh_period
        self._stats = stats
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_cycle(self) -> bool:
        """Run one fetch-and-publish cycle.  Returns True on success."""
        started = time.monotonic()
        try:
            issues = self._client.fetch_all()
        except FetchError as exc:
            logger.error("Error fetching Jira data: %s", exc)
            if self._stats:
                self._stats.record_failure()
            return False

        snapshot = self._aggregator.rebuild(issues)
        elapsed = time.monotonic() - started
        logger.info(
            "Fetched %d issues in %.2fs (%d time-in-status observations)",
            len(issues), elapsed, snapshot.observations,
        )
        if snapshot.failed_keys:
            logger.warning(
                "%d issue(s) skipped for time-in-status: %s",
                len(snapshot.failed_keys), ", ".join(snapshot.failed_keys),
            )
        if self._stats:
            self._stats.record_success(elapsed, len(snapshot.failed_keys))
        return True

    def run_forever(self) -> None:
        """Run cycles until :meth:`stop` is called."""
        logger.info("Refreshing Jira data every %.0fs", self._refresh_period)
        while not self._stop.is_set():
            try:
                self.run_cycle()
            except Exception:
                logger.exception("Refresh cycle failed")
                if self._stats:
                    self._stats.record_failure()
            self._stop.wait(self._refresh_period)
        logger.debug("Poller stopped")

    def start(self) -> None:
        """Start :meth:`run_forever` on a daemon thread."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name="jira-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Ask the loop to exit and wait for the in-flight cycle to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Poller did not stop within %ss", timeout)
            self._thread = None
