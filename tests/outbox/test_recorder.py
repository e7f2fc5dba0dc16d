"""Tests for recording outbox entries inside a caller's transaction."""

from datetime import UTC, datetime

import pytest
from pydantic import BaseModel
from sqlmodel import Session, SQLModel, create_engine, select

from event_relay.event_bus import EventEnvelope
from event_relay.outbox import OutboxEntry, OutboxStatus, build_outbox_entry, record_outbox_entry


class SongCreated(BaseModel):
    song_id: str
    title: str


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'outbox.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


class TestBuildOutboxEntry:
    def test_wraps_payload_in_enriched_envelope(self):
        entry = build_outbox_entry(
            "song", "42", "song.created", SongCreated(song_id="42", title="Intro"), user_id="u1"
        )

        assert entry.status == OutboxStatus.PENDING
        assert entry.retry_count == 0
        assert entry.aggregate_key == ("song", "42")

        envelope = entry.to_envelope()
        assert envelope.event_id == entry.event_id
        assert envelope.payload == {"song_id": "42", "title": "Intro"}
        assert envelope.metadata.user_id == "u1"
        assert envelope.metadata.timestamp is not None
        assert envelope.metadata.correlation_id is not None

    def test_keeps_given_envelope(self):
        envelope = EventEnvelope.create("song.created", {"song_id": "42"}, correlation_id="corr-1")

        entry = build_outbox_entry("song", "42", "song.created", envelope)

        assert entry.event_id == envelope.event_id
        assert entry.to_envelope().metadata.correlation_id == "corr-1"

    def test_envelope_name_must_match_event_type(self):
        envelope = EventEnvelope.create("song.deleted")

        with pytest.raises(ValueError):
            build_outbox_entry("song", "42", "song.created", envelope)

    @pytest.mark.parametrize("aggregate_type,aggregate_id", [("", "42"), ("song", "")])
    def test_aggregate_is_required(self, aggregate_type, aggregate_id):
        with pytest.raises(ValueError):
            build_outbox_entry(aggregate_type, aggregate_id, "song.created", {})

    def test_scheduled_for_is_stored(self):
        when = datetime(2030, 1, 1, tzinfo=UTC)

        entry = build_outbox_entry("song", "42", "song.reminder", {}, scheduled_for=when)

        assert entry.scheduled_for == when


class TestRecordOutboxEntry:
    def test_entry_is_persisted_with_the_caller_commit(self, engine):
        with Session(engine) as session:
            record_outbox_entry(session, "song", "42", "song.created", {"song_id": "42"}, correlation_id="corr-1")
            session.commit()

        with Session(engine) as session:
            entries = session.exec(select(OutboxEntry)).all()

        assert len(entries) == 1
        assert entries[0].event_type == "song.created"
        assert entries[0].id is not None
        assert entries[0].to_envelope().metadata.correlation_id == "corr-1"

    def test_entry_is_discarded_on_rollback(self, engine):
        with Session(engine) as session:
            record_outbox_entry(session, "song", "42", "song.created", {"song_id": "42"})
            session.rollback()

        with Session(engine) as session:
            assert session.exec(select(OutboxEntry)).all() == []
