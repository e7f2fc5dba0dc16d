"""UTC clock helpers."""

from collections.abc import Callable
from datetime import UTC, datetime

import arrow

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return arrow.utcnow().datetime


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from the database.

    SQLite drops the offset of stored timestamps; every timestamp the relay
    writes is UTC, so a naive value is interpreted as such.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
