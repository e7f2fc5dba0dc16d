"""Utility functions for the event relay."""

from event_relay.utils.clock import as_utc, utcnow

__all__ = [
    "as_utc",
    "utcnow",
]
