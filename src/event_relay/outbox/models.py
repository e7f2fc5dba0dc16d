"""Outbox entry model."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import ValidationError
from sqlalchemy import JSON, DateTime, Index, String
from sqlmodel import Field, SQLModel

from event_relay.event_bus.envelope import EventEnvelope
from event_relay.utils.clock import utcnow


class OutboxStatus(StrEnum):
    """Lifecycle of an outbox entry."""

    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"


class OutboxError(Exception):
    """Base exception for outbox related errors."""


class OutboxPayloadError(OutboxError):
    """Raised when an entry's payload cannot be turned back into an envelope."""

    def __init__(self, entry_id: int | None, reason: str):
        self.entry_id = entry_id
        super().__init__(f"Outbox entry {entry_id} has an invalid payload: {reason}")


class OutboxEntry(SQLModel, table=True):
    """A not-yet-published (or already handled) domain event.

    Written in the same transaction as the state change that produced it.
    Only the outbox publisher mutates ``status``, ``retry_count`` and the
    lease columns afterwards.
    """

    __tablename__ = "outbox_entries"
    __table_args__ = (
        Index("ix_outbox_entries_status_created_at", "status", "created_at"),
        Index("ix_outbox_entries_aggregate", "aggregate_type", "aggregate_id", "created_at"),
    )

    # Autoincrement id breaks ties between entries sharing a created_at
    id: int | None = Field(default=None, primary_key=True)
    event_id: str = Field(sa_type=String(36), unique=True)
    aggregate_type: str = Field(sa_type=String(100))
    aggregate_id: str = Field(sa_type=String(255))
    event_type: str = Field(sa_type=String(255), index=True)
    payload: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    status: OutboxStatus = Field(default=OutboxStatus.PENDING, sa_type=String(16))
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    published_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    scheduled_for: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    retry_count: int = Field(default=0)
    last_error: str | None = Field(default=None)
    locked_by: str | None = Field(default=None, sa_type=String(255))
    locked_until: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))

    @property
    def aggregate_key(self) -> tuple[str, str]:
        return (self.aggregate_type, self.aggregate_id)

    def to_envelope(self) -> EventEnvelope:
        """Deserialize the stored envelope.

        Raises:
            OutboxPayloadError: If the payload is not a valid envelope for this entry
        """
        try:
            envelope = EventEnvelope.model_validate(self.payload)
        except ValidationError as e:
            raise OutboxPayloadError(self.id, str(e)) from e

        if envelope.name != self.event_type:
            raise OutboxPayloadError(self.id, f"envelope name '{envelope.name}' does not match '{self.event_type}'")
        return envelope
