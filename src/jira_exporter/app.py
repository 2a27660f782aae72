"""Wire the Jira client, refresh loop and metrics server together."""

from __future__ import annotations

import logging
import signal
import threading

from prometheus_client import (
    CollectorRegistry,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
    disable_created_metrics,
)

from jira_exporter.core.jira_client import JiraClient
from jira_exporter.core.metrics import Aggregator, ExporterStats, SnapshotCollector
from jira_exporter.services.config_manager import Settings
from jira_exporter.services.metrics_server import MetricsServer
from jira_exporter.services.poller import Poller

logger = logging.getLogger(__name__)

_STOP_TIMEOUT = 60.0  # seconds to wait for an in-flight refresh


def build_registry(aggregator: Aggregator) -> CollectorRegistry:
    """Return the registry served on ``/metrics``."""
    registry = CollectorRegistry()
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    GCCollector(registry=registry)
    registry.register(SnapshotCollector(aggregator))
    return registry


def run_app(settings: Settings, stop_event: threading.Event | None = None) -> int:
    """Run the exporter until SIGINT/SIGTERM (or *stop_event*), returning the exit code."""
    logger.info(
        "Starting Jira exporter for %s (window=%dd)",
        ", ".join(settings.projects), settings.analyze_period_days,
    )
    disable_created_metrics()

    client = JiraClient(
        settings.jira_url,
        settings.jira_user,
        settings.jira_api_token,
        settings.projects,
        settings.analyze_period_days,
    )
    aggregator = Aggregator()
    registry = build_registry(aggregator)
    stats = ExporterStats(registry)
    poller = Poller(client, aggregator, settings.data_refresh_period, stats)

    try:
        server = MetricsServer(
            (settings.listen_host, settings.listen_port), registry, client.check_ready,
        )
    except OSError as exc:
        logger.error("Error starting HTTP server: %s", exc)
        return 1

    stop = stop_event or threading.Event()
    if threading.current_thread() is threading.main_thread():
        _install_signal_handlers(stop)

    poller.start()
    server.serve_in_thread()
    stop.wait()

    logger.info("Shutting down")
    server.stop()
    poller.stop(timeout=_STOP_TIMEOUT)
    return 0


def _install_signal_handlers(stop: threading.Event) -> None:
    """Turn SIGINT/SIGTERM into a graceful shutdown."""
    def _shutdown(signum: int, _frame: object) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, shutting down…", sig_name)
        stop.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
