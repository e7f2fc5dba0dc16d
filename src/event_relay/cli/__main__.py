"""CLI entry point.

Usage:
    python -m event_relay.cli db check
    python -m event_relay.cli outbox status
    event-relay-cli outbox failed --limit 20
    event-relay-cli outbox retry-failed --yes
"""

import sys

from loguru import logger

import event_relay
from event_relay.cli.app import app


def _configure_cli_logging() -> None:
    """Configure loguru for CLI (compact format: level + message, no timestamps)."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<level>{level: <8}</level> | <level>{message}</level>",
        level="INFO",
        colorize=True,
    )
    logger.enable(event_relay.__name__)


def main() -> None:
    """CLI entry point with logging configuration."""
    _configure_cli_logging()
    app()


if __name__ == "__main__":
    main()
