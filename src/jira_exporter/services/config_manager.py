"""Environment-based configuration, read once at startup."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from jira_exporter.core.errors import ConfigError

logger = logging.getLogger(__name__)

_REQUIRED = ("LISTEN", "JIRA_URL", "JIRA_USER", "JIRA_API_TOKEN", "PROJECTS")

_DEFAULTS: dict[str, str] = {
    "ANALYZE_PERIOD_DAYS": "90",
    "DATA_REFRESH_PERIOD": "5m",
    "LOG_LEVEL": "INFO",
}

_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class Settings:
    """Validated exporter settings."""

    listen_host: str
    listen_port: int
    jira_url: str
    jira_user: str
    jira_api_token: str = field(repr=False)
    projects: tuple[str, ...] = ()
    analyze_period_days: int = 90
    data_refresh_period: float = 300.0  # seconds
    log_level: str = "INFO"


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from *environ* (defaults to ``os.environ``).

    Empty values count as unset.  Raises :class:`ConfigError` when a required
    variable is missing or a value cannot be parsed.
    """
    env = os.environ if environ is None else environ

    def get(name: str) -> str:
        value = (env.get(name) or "").strip()
        return value or _DEFAULTS.get(name, "")

    missing = [name for name in _REQUIRED if not get(name)]
    if missing:
        raise ConfigError(f"{', '.join(missing)} env is empty")

    host, port = parse_listen_address(get("LISTEN"))
    projects = tuple(p.strip() for p in get("PROJECTS").split(",") if p.strip())
    if not projects:
        raise ConfigError("PROJECTS must name at least one project")

    days_raw = get("ANALYZE_PERIOD_DAYS")
    if not days_raw.isdigit() or int(days_raw) <= 0:
        raise ConfigError(f"ANALYZE_PERIOD_DAYS must be a positive integer, got {days_raw!r}")

    refresh = parse_duration(get("DATA_REFRESH_PERIOD"))
    if refresh <= 0:
        raise ConfigError("DATA_REFRESH_PERIOD must be greater than zero")

    log_level = get("LOG_LEVEL").upper()
    if log_level not in _LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {log_level!r}")

    settings = Settings(
        listen_host=host,
        listen_port=port,
        jira_url=get("JIRA_URL").rstrip("/"),
        jira_user=get("JIRA_USER"),
        jira_api_token=get("JIRA_API_TOKEN"),
        projects=projects,
        analyze_period_days=int(days_raw),
        data_refresh_period=refresh,
        log_level=log_level,
    )
    logger.debug("Settings loaded: %s", settings)
    return settings


def parse_listen_address(value: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``:port``) into a bindable address."""
    host, sep, port = value.rpartition(":")
    if not sep or not port.isdigit() or not 0 <= int(port) <= 65535:
        raise ConfigError(f"LISTEN must look like host:port or :port, got {value!r}")
    return host.strip("[]"), int(port)


def parse_duration(value: str) -> float:
    """Parse a Go-style duration (``90s``, ``5m``, ``1h30m``) into seconds."""
    text = value.strip()
    if text == "0":
        return 0.0
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if not text or pos != len(text):
        raise ConfigError(f"Invalid duration {value!r}")
    return total
