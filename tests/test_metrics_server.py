"""Tests for jira_exporter.services.metrics_server."""

from __future__ import annotations

import urllib.error
import urllib.request
from collections.abc import Callable, Iterator
from datetime import datetime, timezone

import pytest
from prometheus_client import CollectorRegistry

from jira_exporter.core.data_models import JiraIssue
from jira_exporter.core.metrics import Aggregator, SnapshotCollector
from jira_exporter.services.metrics_server import MetricsServer


def _get(url: str, headers: dict[str, str] | None = None) -> tuple[int, str, str]:
    """Issue a GET request and return (status, content type, body)."""
    request = urllib.request.Request(url, headers=headers or {})
    try:
        with urllib.request.urlopen(request, timeout=5) as resp:
            return resp.status, resp.headers.get("Content-Type", ""), resp.read().decode()
    except urllib.error.HTTPError as exc:
        return exc.code, exc.headers.get("Content-Type", ""), exc.read().decode()


@pytest.fixture
def aggregator() -> Aggregator:
    return Aggregator()


@pytest.fixture
def start_server(aggregator: Aggregator) -> Iterator[Callable[[Callable[[], bool]], str]]:
    """Start a server on an ephemeral port; yields a factory returning its base URL."""
    servers: list[MetricsServer] = []

    def _start(readiness_check: Callable[[], bool] = lambda: True) -> str:
        registry = CollectorRegistry()
        registry.register(SnapshotCollector(aggregator))
        server = MetricsServer(("127.0.0.1", 0), registry, readiness_check)
        server.serve_in_thread()
        servers.append(server)
        return f"http://127.0.0.1:{server.port}"

    yield _start
    for server in servers:
        server.stop()


class TestMetricsEndpoint:
    def test_serves_current_snapshot(self, start_server, aggregator: Aggregator) -> None:
        aggregator.rebuild([
            JiraIssue(
                key="DEVOPS-1", created=datetime(2024, 1, 1, tzinfo=timezone.utc),
                project="DEVOPS", priority="High", assignee="alice", status="Open",
                status_category="To Do", issue_type="Task",
            ),
        ])
        base = start_server()

        status, content_type, body = _get(f"{base}/metrics")

        assert status == 200
        assert content_type.startswith("text/plain")
        assert "# TYPE jira_issue_count gauge" in body
        assert 'project="DEVOPS"' in body
        assert 'statusCategory="To Do"' in body

    def test_empty_cycle(self, start_server) -> None:
        status, _, body = _get(f"{start_server()}/metrics")
        assert status == 200
        assert "jira_issue_count{" not in body

    def test_openmetrics_negotiation(self, start_server) -> None:
        accept = "application/openmetrics-text; version=1.0.0"
        status, content_type, body = _get(f"{start_server()}/metrics", {"Accept": accept})
        assert status == 200
        assert content_type.startswith("application/openmetrics-text")
        assert body.rstrip().endswith("# EOF")


class TestProbes:
    def test_liveness(self, start_server) -> None:
        status, _, _ = _get(f"{start_server(lambda: False)}/liveness")
        assert status == 200

    def test_readiness_ok(self, start_server) -> None:
        status, _, _ = _get(f"{start_server(lambda: True)}/readiness")
        assert status == 200

    def test_readiness_failure(self, start_server) -> None:
        status, _, _ = _get(f"{start_server(lambda: False)}/readiness")
        assert status == 500

    def test_readiness_runs_check_per_request(self, start_server) -> None:
        calls: list[int] = []

        def check() -> bool:
            calls.append(1)
            return True

        base = start_server(check)
        _get(f"{base}/readiness")
        _get(f"{base}/readiness")
        assert len(calls) == 2


class TestUnknownPath:
    def test_404(self, start_server) -> None:
        status, _, _ = _get(f"{start_server()}/other")
        assert status == 404
