"""Write side of the transactional outbox.

Domain write paths call ``record_outbox_entry`` with the session that
carries their own state change. The entry is added to that session and
becomes visible exactly when the caller commits:

```python
with borrow_db_session() as session:
    session.add(song)
    record_outbox_entry(session, "song", str(song.id), "song.created", SongCreated(...))
    session.commit()
```
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel
from sqlmodel import Session

from event_relay.event_bus.envelope import EventEnvelope
from event_relay.utils.clock import utcnow

from .models import OutboxEntry, OutboxStatus


def build_outbox_entry(
    aggregate_type: str,
    aggregate_id: str,
    event_type: str,
    payload: EventEnvelope | BaseModel | Mapping[str, Any] | None,
    *,
    correlation_id: str | None = None,
    causation_id: str | None = None,
    user_id: str | None = None,
    scheduled_for: datetime | None = None,
) -> OutboxEntry:
    """Build a PENDING outbox entry holding an enriched envelope.

    Args:
        aggregate_type: Kind of aggregate that changed, e.g. "lyrics"
        aggregate_id: Identifier of that aggregate
        event_type: Event name; must match the envelope name when one is given
        payload: Ready envelope, or the event data to wrap into one
        correlation_id: Correlation id for a new envelope (ignored for envelopes)
        causation_id: Causation id for a new envelope (ignored for envelopes)
        user_id: Actor for a new envelope (ignored for envelopes)
        scheduled_for: Earliest time the entry may be published

    Raises:
        ValueError: If identifiers are empty or the envelope name differs from event_type
    """
    if not aggregate_type or not aggregate_id:
        raise ValueError("aggregate_type and aggregate_id are required")

    if isinstance(payload, EventEnvelope):
        if payload.name != event_type:
            raise ValueError(f"Envelope name '{payload.name}' does not match event type '{event_type}'")
        envelope = payload
    else:
        envelope = EventEnvelope.create(
            event_type,
            payload,
            correlation_id=correlation_id,
            causation_id=causation_id,
            user_id=user_id,
        )

    now = utcnow()
    envelope = envelope.enrich(now)

    return OutboxEntry(
        event_id=envelope.event_id,
        aggregate_type=aggregate_type,
        aggregate_id=str(aggregate_id),
        event_type=event_type,
        payload=envelope.model_dump(mode="json"),
        status=OutboxStatus.PENDING,
        created_at=now,
        scheduled_for=scheduled_for,
    )


def record_outbox_entry(
    session: Session,
    aggregate_type: str,
    aggregate_id: str,
    event_type: str,
    payload: EventEnvelope | BaseModel | Mapping[str, Any] | None,
    *,
    correlation_id: str | None = None,
    causation_id: str | None = None,
    user_id: str | None = None,
    scheduled_for: datetime | None = None,
) -> OutboxEntry:
    """Add an outbox entry to the caller's session without committing.

    The caller owns the transaction: the entry is persisted atomically with
    whatever else the session holds, or not at all.

    Returns:
        The pending entry (its id is assigned on flush)
    """
    entry = build_outbox_entry(
        aggregate_type,
        aggregate_id,
        event_type,
        payload,
        correlation_id=correlation_id,
        causation_id=causation_id,
        user_id=user_id,
        scheduled_for=scheduled_for,
    )
    session.add(entry)
    logger.debug(f"Recorded outbox entry for {event_type} on {aggregate_type}:{aggregate_id} (eventId={entry.event_id})")
    return entry
