"""Tests for event envelopes."""

from datetime import UTC, datetime

import pytest
from pydantic import BaseModel, ValidationError

from event_relay.event_bus import EventEnvelope, EventMetadata


class SongPlayed(BaseModel):
    song_id: str
    seconds: int


def test_create_from_model_payload():
    envelope = EventEnvelope.create("song.played", SongPlayed(song_id="42", seconds=30), user_id="u1")

    assert envelope.name == "song.played"
    assert envelope.payload == {"song_id": "42", "seconds": 30}
    assert envelope.metadata.user_id == "u1"
    assert envelope.metadata.timestamp is None
    assert envelope.metadata.correlation_id is None


def test_create_from_mapping_and_none():
    assert EventEnvelope.create("song.played", {"song_id": "42"}).payload == {"song_id": "42"}
    assert EventEnvelope.create("song.played").payload == {}


def test_each_envelope_gets_a_unique_id():
    first = EventEnvelope.create("song.played")
    second = EventEnvelope.create("song.played")
    assert first.event_id != second.event_id


def test_empty_name_is_rejected():
    with pytest.raises(ValidationError):
        EventEnvelope.create("")


def test_envelope_is_immutable():
    envelope = EventEnvelope.create("song.played")
    with pytest.raises(ValidationError):
        envelope.name = "song.skipped"


def test_enrich_fills_missing_fields():
    now = datetime(2026, 1, 1, tzinfo=UTC)
    envelope = EventEnvelope.create("song.played")

    enriched = envelope.enrich(now)

    assert enriched.metadata.timestamp == now
    assert enriched.metadata.correlation_id
    assert enriched.event_id == envelope.event_id
    # original untouched
    assert envelope.metadata.timestamp is None


def test_enrich_never_overwrites():
    earlier = datetime(2025, 6, 1, tzinfo=UTC)
    envelope = EventEnvelope(
        name="song.played",
        metadata=EventMetadata(timestamp=earlier, correlation_id="corr-1"),
    )

    assert envelope.is_enriched
    assert envelope.enrich() is envelope


def test_enrich_is_idempotent():
    once = EventEnvelope.create("song.played", correlation_id="corr-1").enrich()
    twice = once.enrich()

    assert twice is once
    assert twice.metadata.correlation_id == "corr-1"


def test_derive_keeps_causal_chain():
    parent = EventEnvelope.create("lyrics.verified", {"id": "L1"}, user_id="u1").enrich()

    child = parent.derive("lyrics.translated", {"id": "T1"})

    assert child.metadata.correlation_id == parent.metadata.correlation_id
    assert child.metadata.causation_id == parent.event_id
    assert child.metadata.user_id == "u1"
    assert child.event_id != parent.event_id


def test_json_round_trip_preserves_metadata():
    envelope = EventEnvelope.create("song.played", {"song_id": "42"}, causation_id="cmd-1").enrich()

    restored = EventEnvelope.model_validate(envelope.model_dump(mode="json"))

    assert restored == envelope
