"""Entry point for ``python -m jira_exporter``."""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

logger = logging.getLogger("jira_exporter")


def main(argv: list[str] | None = None) -> int:
    """Launch the Jira Prometheus exporter."""
    parser = argparse.ArgumentParser(
        prog="jira-exporter",
        description="Export Jira issue counts and time-in-status as Prometheus metrics.",
    )
    parser.add_argument(
        "--env-file",
        metavar="PATH",
        help="Load environment variables from a dotenv file before reading settings.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.env_file and not load_dotenv(args.env_file):
        logger.warning("No variables loaded from %s", args.env_file)

    from jira_exporter.core.errors import ConfigError
    from jira_exporter.services.config_manager import load_settings

    try:
        settings = load_settings()
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1
    logging.getLogger().setLevel(settings.log_level)

    from jira_exporter.app import run_app

    return run_app(settings)


if __name__ == "__main__":
    raise SystemExit(main())
