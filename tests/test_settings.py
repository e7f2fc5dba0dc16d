"""Tests for event_relay.settings.Settings behavior."""

from typing import Any

import pytest

from event_relay.settings import Settings, get_settings


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch):
    """Defaults should be stable even if external env or .env sets values.

    We explicitly delete the relevant variables and bypass .env loading
    by passing `_env_file=None`.
    """
    for var in [
        "EVENT_RELAY_LOG_LEVEL",
        "EVENT_RELAY_SQL_LOG",
        "EVENT_RELAY_DATABASE_URL",
        "EVENT_RELAY_OUTBOX_POLL_INTERVAL",
        "EVENT_RELAY_OUTBOX_BATCH_SIZE",
        "EVENT_RELAY_OUTBOX_MAX_RETRIES",
        "EVENT_RELAY_TRANSLATION_TARGET_LANGUAGES",
        "EVENT_RELAY_PUBLISHER_ID",
        "EVENT_RELAY_COLLABORATORS_FACTORY",
    ]:
        monkeypatch.delenv(var, raising=False)
    s = Settings(_env_file=None)  # ignore project .env file if present
    assert s.log_level == "INFO"
    assert s.sql_log is False
    assert s.database_url is None
    assert s.outbox_poll_interval == 10.0
    assert s.outbox_batch_size == 50
    assert s.outbox_max_retries == 5
    assert s.translation_target_languages == ["es", "fr", "de"]
    assert s.publisher_id
    assert s.collaborators_factory is None


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("EVENT_RELAY_SQL_LOG", "true")
    monkeypatch.setenv("EVENT_RELAY_OUTBOX_BATCH_SIZE", "10")
    monkeypatch.setenv("EVENT_RELAY_OUTBOX_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("EVENT_RELAY_PUBLISHER_ID", "relay-1")
    s = Settings(_env_file=None)
    assert s.sql_log is True
    assert s.outbox_batch_size == 10
    assert s.outbox_poll_interval == 2.5
    assert s.publisher_id == "relay-1"


def test_case_insensitive_env_name(monkeypatch: pytest.MonkeyPatch):
    # lower-case variable name should still be picked up due to case_sensitive=False
    monkeypatch.setenv("event_relay_outbox_max_retries", "3")  # type: ignore[arg-type]
    s = Settings(_env_file=None)
    assert s.outbox_max_retries == 3


def test_target_languages_from_comma_separated_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("EVENT_RELAY_TRANSLATION_TARGET_LANGUAGES", " ES, it ,es,")
    s = Settings(_env_file=None)
    assert s.translation_target_languages == ["es", "it"]


@pytest.mark.parametrize("level,expected", [("debug", "DEBUG"), ("Warning", "WARNING"), (None, "INFO")])
def test_log_level_is_normalized(level, expected):
    assert Settings(_env_file=None, log_level=level).log_level == expected


def test_invalid_log_level():
    with pytest.raises(ValueError):
        Settings(_env_file=None, log_level="verbose")


@pytest.mark.parametrize("field", ["outbox_batch_size", "outbox_max_retries", "outbox_poll_interval"])
def test_non_positive_publisher_limits_are_rejected(field: str):
    with pytest.raises(ValueError):
        Settings(_env_file=None, **{field: 0})


def test_get_settings_singleton():
    a = get_settings()
    b = get_settings()
    assert a is b


def test_get_settings_cache_not_affected_by_new_env(monkeypatch: pytest.MonkeyPatch):
    # Ensure cache stability: first call caches values
    first = get_settings()
    original = first.outbox_batch_size
    monkeypatch.setenv("EVENT_RELAY_OUTBOX_BATCH_SIZE", "7")
    second = get_settings()
    assert second is first
    assert second.outbox_batch_size == original  # cache not invalidated


@pytest.mark.parametrize(
    "override,expected",
    [
        ({"publisher_id": "relay-2"}, "relay-2"),
        ({"outbox_lease_seconds": 5.0}, 5.0),
    ],
)
def test_direct_instantiation_with_overrides(override: dict[str, Any], expected: Any):
    s = Settings(_env_file=None, **override)
    key = next(iter(override.keys()))
    assert getattr(s, key) == expected


def test_database_url_override(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("EVENT_RELAY_DATABASE_URL", "postgresql+psycopg://u:p@h/db")
    s = Settings(_env_file=None)
    assert s.database_url == "postgresql+psycopg://u:p@h/db"
