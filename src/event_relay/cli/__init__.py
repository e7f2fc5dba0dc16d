"""CLI module for the event relay.

Provides command-line interface for administrative tasks like database and
outbox management.
"""

from event_relay.cli.app import app

__all__ = ["app"]
