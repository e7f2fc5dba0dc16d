from datetime import UTC, datetime, timedelta, timezone

from event_relay.utils import as_utc, utcnow


def test_utcnow_is_timezone_aware():
    now = utcnow()
    assert now.utcoffset() == timedelta(0)


def test_as_utc_treats_naive_values_as_utc():
    assert as_utc(datetime(2026, 1, 1, 12, 0)) == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def test_as_utc_converts_other_offsets():
    paris = timezone(timedelta(hours=1))

    converted = as_utc(datetime(2026, 1, 1, 13, 0, tzinfo=paris))

    assert converted.hour == 12
    assert converted.tzinfo == UTC
