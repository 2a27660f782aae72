"""Tests for jira_exporter.services.config_manager."""

from __future__ import annotations

import pytest

from jira_exporter.core.errors import ConfigError
from jira_exporter.services.config_manager import (
    load_settings,
    parse_duration,
    parse_listen_address,
)


def _make_env(**overrides: str) -> dict[str, str]:
    """Return a complete environment with *overrides* applied."""
    env = {
        "LISTEN": ":8080",
        "JIRA_URL": "https://company.atlassian.net/",
        "JIRA_USER": "bot@company.com",
        "JIRA_API_TOKEN": "s3cret",
        "PROJECTS": "DEVOPS, OPS",
    }
    env.update(overrides)
    return env


class TestDefaults:
    """Optional settings fall back to their defaults."""

    def test_analyze_period_days(self) -> None:
        assert load_settings(_make_env()).analyze_period_days == 90

    def test_refresh_period(self) -> None:
        assert load_settings(_make_env()).data_refresh_period == 300.0

    def test_log_level(self) -> None:
        assert load_settings(_make_env()).log_level == "INFO"

    def test_empty_value_uses_default(self) -> None:
        assert load_settings(_make_env(ANALYZE_PERIOD_DAYS="")).analyze_period_days == 90


class TestRequired:
    @pytest.mark.parametrize(
        "name", ["LISTEN", "JIRA_URL", "JIRA_USER", "JIRA_API_TOKEN", "PROJECTS"],
    )
    def test_missing_required(self, name: str) -> None:
        env = _make_env()
        del env[name]
        with pytest.raises(ConfigError, match=name):
            load_settings(env)

    def test_blank_counts_as_missing(self) -> None:
        with pytest.raises(ConfigError, match="JIRA_USER"):
            load_settings(_make_env(JIRA_USER="   "))


class TestParsedValues:
    def test_full_settings(self) -> None:
        settings = load_settings(
            _make_env(ANALYZE_PERIOD_DAYS="14", DATA_REFRESH_PERIOD="1m30s", LOG_LEVEL="debug"),
        )
        assert settings.listen_host == ""
        assert settings.listen_port == 8080
        assert settings.jira_url == "https://company.atlassian.net"
        assert settings.projects == ("DEVOPS", "OPS")
        assert settings.analyze_period_days == 14
        assert settings.data_refresh_period == 90.0
        assert settings.log_level == "DEBUG"

    def test_token_not_in_repr(self) -> None:
        assert "s3cret" not in repr(load_settings(_make_env()))

    def test_invalid_days(self) -> None:
        with pytest.raises(ConfigError, match="ANALYZE_PERIOD_DAYS"):
            load_settings(_make_env(ANALYZE_PERIOD_DAYS="-3"))

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ConfigError, match="LOG_LEVEL"):
            load_settings(_make_env(LOG_LEVEL="chatty"))

    def test_zero_refresh_period(self) -> None:
        with pytest.raises(ConfigError, match="DATA_REFRESH_PERIOD"):
            load_settings(_make_env(DATA_REFRESH_PERIOD="0s"))

    def test_projects_only_commas(self) -> None:
        with pytest.raises(ConfigError, match="PROJECTS"):
            load_settings(_make_env(PROJECTS=" , ,"))

    def test_reads_os_environ_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for key, value in _make_env(PROJECTS="ENV").items():
            monkeypatch.setenv(key, value)
        assert load_settings().projects == ("ENV",)


class TestParseDuration:
    @pytest.mark.parametrize(
        ("text", "seconds"),
        [
            ("5m", 300.0),
            ("90s", 90.0),
            ("1h30m", 5400.0),
            ("500ms", 0.5),
            ("1.5h", 5400.0),
            ("0", 0.0),
        ],
    )
    def test_valid(self, text: str, seconds: float) -> None:
        assert parse_duration(text) == pytest.approx(seconds)

    @pytest.mark.parametrize("text", ["", "5", "5 m", "m5", "5d", "1h-30m"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ConfigError):
            parse_duration(text)


class TestParseListenAddress:
    def test_port_only(self) -> None:
        assert parse_listen_address(":9100") == ("", 9100)

    def test_host_and_port(self) -> None:
        assert parse_listen_address("127.0.0.1:9100") == ("127.0.0.1", 9100)

    def test_ipv6(self) -> None:
        assert parse_listen_address("[::1]:9100") == ("::1", 9100)

    @pytest.mark.parametrize("text", ["9100", "host:", "host:http", ":70000"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(ConfigError, match="LISTEN"):
            parse_listen_address(text)
