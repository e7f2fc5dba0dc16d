"""Outbox storage.

``OutboxStore`` is the read/mutate interface the publisher uses; it is the
only path through which an entry's status changes after it was recorded.

Concurrency between publisher instances is handled with leases: claiming a
batch stamps ``locked_by``/``locked_until`` on the selected rows inside one
short ``SELECT ... FOR UPDATE`` transaction. Every later transition is
conditional on still holding the lease, so an entry can never be counted
both as retried and as published. A publisher that dies simply lets its
leases expire and the entries are delivered again (at-least-once).
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Sequence
from contextlib import AbstractContextManager
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import func, update
from sqlmodel import Session, col, select

from event_relay.database.connection import borrow_db_session
from event_relay.utils.clock import Clock, as_utc, utcnow

from .models import OutboxEntry, OutboxStatus

SessionFactory = Callable[[], AbstractContextManager[Session]]

MAX_ERROR_LENGTH = 2000


def is_leased(entry: OutboxEntry, now: datetime) -> bool:
    return entry.locked_by is not None and entry.locked_until is not None and as_utc(entry.locked_until) > now


def is_due(entry: OutboxEntry, now: datetime) -> bool:
    return entry.scheduled_for is None or as_utc(entry.scheduled_for) <= now


def select_claimable(candidates: Iterable[OutboxEntry], now: datetime) -> list[OutboxEntry]:
    """Pick the entries a publisher may take from oldest-first PENDING candidates.

    Once an aggregate has an entry that cannot be taken (under an unexpired
    lease, whoever holds it, or scheduled in the future), none of its later
    entries are taken either, so events of one aggregate are never published
    out of order and an entry is never dispatched twice at the same time.

    Args:
        candidates: PENDING entries ordered by (created_at, id)
        now: Current time

    Returns:
        The claimable entries, still in candidate order
    """
    blocked: set[tuple[str, str]] = set()
    claimable: list[OutboxEntry] = []

    for entry in candidates:
        key = entry.aggregate_key
        if key in blocked:
            continue
        if is_leased(entry, now) or not is_due(entry, now):
            blocked.add(key)
            continue
        claimable.append(entry)

    return claimable


class OutboxStore(ABC):
    """Abstract outbox storage used by the publisher."""

    @abstractmethod
    async def claim_batch(self, owner: str, limit: int, lease_seconds: float) -> list[OutboxEntry]:
        """Lease up to ``limit`` claimable PENDING entries, oldest first."""

    @abstractmethod
    async def mark_published(self, entry_id: int, owner: str) -> bool:
        """Mark a leased entry PUBLISHED.

        Returns:
            False if the entry is no longer leased to ``owner``
        """

    @abstractmethod
    async def record_failure(self, entry_id: int, owner: str, error: str, max_retries: int) -> OutboxStatus | None:
        """Count a failed publish attempt and release the lease.

        The entry becomes FAILED once ``retry_count`` reaches ``max_retries``.

        Returns:
            The resulting status, or None if the entry is no longer leased to ``owner``
        """

    @abstractmethod
    async def release(self, entry_ids: Sequence[int], owner: str) -> None:
        """Give up leases without touching status or retry count."""

    @abstractmethod
    async def requeue_failed(self, entry_ids: Sequence[int] | None = None) -> int:
        """Move FAILED entries back to PENDING with a fresh retry budget.

        Args:
            entry_ids: Entries to requeue; all FAILED entries when None

        Returns:
            Number of requeued entries
        """

    @abstractmethod
    async def list_entries(self, status: OutboxStatus | None = None, limit: int = 100) -> list[OutboxEntry]:
        """List entries oldest first, optionally filtered by status."""

    @abstractmethod
    async def count_by_status(self) -> dict[OutboxStatus, int]:
        """Count entries per status."""


class SqlOutboxStore(OutboxStore):
    """Outbox store backed by the ``outbox_entries`` table.

    Sessions are synchronous SQLModel sessions; each operation runs in a
    worker thread so the event loop keeps serving other aggregates while the
    datastore call is in flight.
    """

    def __init__(self, session_factory: SessionFactory = borrow_db_session, clock: Clock = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    async def claim_batch(self, owner: str, limit: int, lease_seconds: float) -> list[OutboxEntry]:
        return await asyncio.to_thread(self._claim_batch, owner, limit, lease_seconds)

    async def mark_published(self, entry_id: int, owner: str) -> bool:
        return await asyncio.to_thread(self._mark_published, entry_id, owner)

    async def record_failure(self, entry_id: int, owner: str, error: str, max_retries: int) -> OutboxStatus | None:
        return await asyncio.to_thread(self._record_failure, entry_id, owner, error, max_retries)

    async def release(self, entry_ids: Sequence[int], owner: str) -> None:
        if entry_ids:
            await asyncio.to_thread(self._release, list(entry_ids), owner)

    async def requeue_failed(self, entry_ids: Sequence[int] | None = None) -> int:
        return await asyncio.to_thread(self._requeue_failed, None if entry_ids is None else list(entry_ids))

    async def list_entries(self, status: OutboxStatus | None = None, limit: int = 100) -> list[OutboxEntry]:
        return await asyncio.to_thread(self._list_entries, status, limit)

    async def count_by_status(self) -> dict[OutboxStatus, int]:
        return await asyncio.to_thread(self._count_by_status)

    def _claim_batch(self, owner: str, limit: int, lease_seconds: float) -> list[OutboxEntry]:
        now = self._clock()
        with self._session_factory() as session:
            stmt = (
                select(OutboxEntry)
                .where(OutboxEntry.status == OutboxStatus.PENDING)
                .order_by(col(OutboxEntry.created_at), col(OutboxEntry.id))
                .limit(limit)
                .with_for_update()
            )
            candidates = session.exec(stmt).all()
            claimed = select_claimable(candidates, now)

            lease_until = now + timedelta(seconds=lease_seconds)
            for entry in claimed:
                entry.locked_by = owner
                entry.locked_until = lease_until
                session.add(entry)
            session.commit()

            for entry in claimed:
                session.refresh(entry)
                session.expunge(entry)

        logger.trace(f"Claimed {len(claimed)} of {len(candidates)} pending outbox entries for {owner}")
        return claimed

    def _mark_published(self, entry_id: int, owner: str) -> bool:
        with self._session_factory() as session:
            stmt = (
                update(OutboxEntry)
                .where(
                    (col(OutboxEntry.id) == entry_id)
                    & (col(OutboxEntry.locked_by) == owner)
                    & (col(OutboxEntry.status) == OutboxStatus.PENDING)
                )
                .values(
                    status=OutboxStatus.PUBLISHED,
                    published_at=self._clock(),
                    locked_by=None,
                    locked_until=None,
                )
            )
            result = session.exec(stmt)
            session.commit()
            return result.rowcount == 1

    def _record_failure(self, entry_id: int, owner: str, error: str, max_retries: int) -> OutboxStatus | None:
        with self._session_factory() as session:
            entry = session.get(OutboxEntry, entry_id, with_for_update=True)
            if entry is None or entry.locked_by != owner or entry.status != OutboxStatus.PENDING:
                session.rollback()
                return None

            entry.retry_count += 1
            entry.last_error = error[:MAX_ERROR_LENGTH]
            entry.locked_by = None
            entry.locked_until = None
            status = OutboxStatus.FAILED if entry.retry_count >= max_retries else OutboxStatus.PENDING
            entry.status = status
            session.add(entry)
            session.commit()
            return status

    def _release(self, entry_ids: list[int], owner: str) -> None:
        with self._session_factory() as session:
            stmt = (
                update(OutboxEntry)
                .where(col(OutboxEntry.id).in_(entry_ids) & (col(OutboxEntry.locked_by) == owner))
                .values(locked_by=None, locked_until=None)
            )
            session.exec(stmt)
            session.commit()

    def _requeue_failed(self, entry_ids: list[int] | None) -> int:
        with self._session_factory() as session:
            condition = col(OutboxEntry.status) == OutboxStatus.FAILED
            if entry_ids is not None:
                condition = condition & col(OutboxEntry.id).in_(entry_ids)
            stmt = (
                update(OutboxEntry)
                .where(condition)
                .values(status=OutboxStatus.PENDING, retry_count=0, last_error=None, locked_by=None, locked_until=None)
            )
            result = session.exec(stmt)
            session.commit()
            return result.rowcount

    def _list_entries(self, status: OutboxStatus | None, limit: int) -> list[OutboxEntry]:
        with self._session_factory() as session:
            stmt = select(OutboxEntry).order_by(col(OutboxEntry.created_at), col(OutboxEntry.id)).limit(limit)
            if status is not None:
                stmt = stmt.where(OutboxEntry.status == status)
            entries = list(session.exec(stmt).all())
            for entry in entries:
                session.expunge(entry)
            return entries

    def _count_by_status(self) -> dict[OutboxStatus, int]:
        counts = {status: 0 for status in OutboxStatus}
        with self._session_factory() as session:
            stmt = select(OutboxEntry.status, func.count()).group_by(OutboxEntry.status)
            for status, count in session.exec(stmt).all():
                counts[OutboxStatus(status)] = count
        return counts
