"""Outbox publisher.

Drains PENDING outbox entries on a polling cadence and pushes each one
through the event bus. Per tick:

1. Claim a bounded, oldest-first batch (see ``select_claimable``).
2. Group the batch by aggregate. Groups run concurrently; entries inside a
   group are published one after the other, in recorded order.
3. A successful dispatch marks the entry PUBLISHED. A failed one counts a
   retry (FAILED once the budget is spent) and releases the rest of its
   group, so a later event never overtakes an earlier one.

A crash between dispatch and ``mark_published`` leaves the entry leased;
once the lease expires it is published again. Handlers must therefore be
safe under at-least-once delivery.
"""

import asyncio
import contextlib
from collections.abc import Sequence
from dataclasses import dataclass

import arrow
from loguru import logger

from event_relay.event_bus.bus import EventBus
from event_relay.event_bus.core import EventBusError

from .models import OutboxEntry, OutboxError, OutboxStatus
from .store import OutboxStore


@dataclass
class TickReport:
    """Outcome of one publisher tick."""

    claimed: int = 0
    published: int = 0
    retried: int = 0
    dead_lettered: int = 0
    deferred: int = 0
    lost_leases: int = 0
    store_errors: int = 0
    skipped: bool = False

    @property
    def processed(self) -> int:
        return self.published + self.retried + self.dead_lettered

    @property
    def all_published(self) -> bool:
        return self.published == self.claimed


class OutboxPublisher:
    """Scheduled process moving outbox entries onto the event bus."""

    def __init__(
        self,
        store: OutboxStore,
        bus: EventBus,
        *,
        publisher_id: str,
        batch_size: int = 50,
        max_retries: int = 5,
        poll_interval: float = 10.0,
        lease_seconds: float = 60.0,
    ) -> None:
        if batch_size <= 0 or max_retries <= 0:
            raise ValueError("batch_size and max_retries must be positive")

        self._store = store
        self._bus = bus
        self.publisher_id = publisher_id
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.poll_interval = poll_interval
        self.lease_seconds = lease_seconds

        self._ticking = False
        self._task: asyncio.Task[None] | None = None
        self._stopping: asyncio.Event | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> TickReport:
        """Claim one batch and publish it.

        Returns:
            Counters describing what happened to the claimed entries
        """
        if self._ticking:
            logger.debug("Outbox tick already in progress, skipping")
            return TickReport(skipped=True)

        self._ticking = True
        started = arrow.utcnow().float_timestamp
        try:
            entries = await self._store.claim_batch(self.publisher_id, self.batch_size, self.lease_seconds)
            report = TickReport(claimed=len(entries))
            if not entries:
                return report

            groups: dict[tuple[str, str], list[OutboxEntry]] = {}
            for entry in entries:
                groups.setdefault(entry.aggregate_key, []).append(entry)

            await asyncio.gather(*(self._publish_group(group, report) for group in groups.values()))

            elapsed_ms = (arrow.utcnow().float_timestamp - started) * 1000
            logger.info(
                f"Outbox tick: {report.published} published, {report.retried} retried, "
                f"{report.dead_lettered} dead-lettered, {report.deferred} deferred, {report.store_errors} store errors "
                f"({elapsed_ms:.0f} ms)"
            )
            return report
        finally:
            self._ticking = False

    async def _publish_group(self, group: Sequence[OutboxEntry], report: TickReport) -> None:
        """Publish the entries of one aggregate strictly in order.

        A store error ends the group: it is logged, and the current entry and
        the ones behind it are released. It never escapes to the other groups.
        """
        for index, entry in enumerate(group):
            try:
                if await self._publish_entry(entry, report):
                    continue
            except Exception as e:
                report.store_errors += 1
                logger.opt(exception=e).error(
                    f"Outbox store error on entry {entry.id} of {entry.aggregate_type}:{entry.aggregate_id}: {e}"
                )
                await self._release(group[index:], report)
                return

            remaining = group[index + 1 :]
            if remaining:
                logger.debug(
                    f"Deferring {len(remaining)} outbox entries of {entry.aggregate_type}:{entry.aggregate_id} "
                    f"behind failed entry {entry.id}"
                )
                await self._release(remaining, report)
            return

    async def _release(self, entries: Sequence[OutboxEntry], report: TickReport) -> None:
        report.deferred += len(entries)
        try:
            await self._store.release([e.id for e in entries], self.publisher_id)
        except Exception as e:
            # Leases run out on their own; the entries come back after lease_seconds
            logger.opt(exception=e).error(f"Failed to release {len(entries)} outbox entries: {e}")

    async def _publish_entry(self, entry: OutboxEntry, report: TickReport) -> bool:
        """Dispatch a single entry and record the outcome.

        Returns:
            True if the entry was published and the next one of its aggregate may follow
        """
        try:
            envelope = entry.to_envelope()
            await self._bus.publish(envelope)
        except (EventBusError, OutboxError) as e:
            await self._handle_failure(entry, e, report)
            return False

        if await self._store.mark_published(entry.id, self.publisher_id):
            report.published += 1
            logger.debug(f"Published outbox entry {entry.id} ({entry.event_type}, eventId={entry.event_id})")
        else:
            # Lease expired and another publisher owns the entry now; it will deliver it again
            report.lost_leases += 1
            logger.warning(f"Lost lease on outbox entry {entry.id} after dispatch; it may be delivered twice")
        return True

    async def _handle_failure(self, entry: OutboxEntry, error: Exception, report: TickReport) -> None:
        status = await self._store.record_failure(entry.id, self.publisher_id, str(error), self.max_retries)

        if status is None:
            report.lost_leases += 1
            logger.warning(f"Lost lease on outbox entry {entry.id} while recording failure: {error}")
        elif status == OutboxStatus.FAILED:
            report.dead_lettered += 1
            logger.error(
                f"Outbox entry {entry.id} ({entry.event_type} on {entry.aggregate_type}:{entry.aggregate_id}) "
                f"exceeded {self.max_retries} attempts and was marked as FAILED: {error}"
            )
        else:
            report.retried += 1
            logger.warning(f"Failed to publish outbox entry {entry.id} ({entry.event_type}), will retry next tick: {error}")

    async def run_forever(self) -> None:
        """Tick until ``stop`` is called.

        A tick that raises is logged and the loop carries on. A full batch
        that was published entirely is followed immediately by another tick;
        otherwise the loop waits one polling interval, which is also the
        backoff between two attempts of a failing entry.
        """
        self._stopping = asyncio.Event()
        logger.info(
            f"Outbox publisher {self.publisher_id} started "
            f"(interval={self.poll_interval}s, batch={self.batch_size}, max_retries={self.max_retries})"
        )

        while not self._stopping.is_set():
            report = TickReport()
            try:
                report = await self.tick()
            except Exception as e:
                logger.opt(exception=e).error(f"Outbox polling error: {e}")

            if report.claimed >= self.batch_size and report.all_published:
                continue

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)

        logger.info(f"Outbox publisher {self.publisher_id} stopped")

    def start(self) -> asyncio.Task[None]:
        """Run the polling loop as a background task."""
        if self.is_running:
            raise RuntimeError("Outbox publisher already running")
        self._task = asyncio.create_task(self.run_forever(), name=f"outbox-publisher-{self.publisher_id}")
        return self._task

    async def stop(self) -> None:
        """Stop the polling loop, letting an in-flight tick finish."""
        if self._stopping is not None:
            self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None
