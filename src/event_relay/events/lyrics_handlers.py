"""Lyrics-related event handlers."""

import asyncio

from loguru import logger

from event_relay.event_bus import EventEnvelope, EventHandler
from event_relay.events.types import LyricsCreatedPayload, LyricsVerifiedPayload
from event_relay.services import AnalyticsService, Notification, NotificationService, SearchDocument, SearchService


class LyricsCreatedHandler(EventHandler):
    """Index newly created lyrics in the search engine."""

    def __init__(self, search: SearchService):
        self.search = search

    async def handle(self, envelope: EventEnvelope) -> None:
        payload = LyricsCreatedPayload.model_validate(envelope.payload)
        logger.debug(f"Handling {envelope.name} for lyrics id: {payload.id}")

        try:
            await self.search.index(
                SearchDocument(
                    id=payload.id,
                    type="lyrics",
                    content=payload.content,
                    language=payload.language,
                    song_id=payload.song_id,
                )
            )
            logger.debug(f"Successfully indexed lyrics {payload.id} in search engine")
        except Exception as e:
            logger.opt(exception=e).error(
                f"Failed to index lyrics {payload.id} (correlationId={envelope.metadata.correlation_id}): {e}"
            )


class LyricsVerifiedHandler(EventHandler):
    """Notify the contributor and record analytics when lyrics are verified.

    Both sub-actions run concurrently and fail independently.
    """

    def __init__(self, notifications: NotificationService, analytics: AnalyticsService):
        self.notifications = notifications
        self.analytics = analytics

    async def handle(self, envelope: EventEnvelope) -> None:
        payload = LyricsVerifiedPayload.model_validate(envelope.payload)
        logger.debug(f"Handling {envelope.name} for lyrics id: {payload.id}")

        await asyncio.gather(
            self._notify_contributor(payload, envelope),
            self._track_verification(payload, envelope),
        )

    async def _notify_contributor(self, payload: LyricsVerifiedPayload, envelope: EventEnvelope) -> None:
        if payload.contributor_id is None:
            logger.debug(f"Lyrics {payload.id} has no contributor to notify")
            return

        try:
            await self.notifications.send(
                Notification(
                    recipient_id=payload.contributor_id,
                    type="LYRICS_VERIFIED",
                    title="Lyrics verified",
                    body="Your lyrics were verified",
                    data={"lyricsId": payload.id, "songId": payload.song_id},
                )
            )
        except Exception as e:
            logger.opt(exception=e).error(
                f"Failed to send notification for lyrics {payload.id} (correlationId={envelope.metadata.correlation_id}): {e}"
            )

    async def _track_verification(self, payload: LyricsVerifiedPayload, envelope: EventEnvelope) -> None:
        timestamp = envelope.metadata.timestamp
        try:
            await self.analytics.track_event(
                "lyrics_verified",
                {
                    "lyricsId": payload.id,
                    "songId": payload.song_id,
                    "verifiedById": payload.verified_by_id,
                    "timestamp": timestamp.isoformat() if timestamp else None,
                },
            )
        except Exception as e:
            logger.opt(exception=e).error(
                f"Failed to update analytics for lyrics {payload.id} (correlationId={envelope.metadata.correlation_id}): {e}"
            )
