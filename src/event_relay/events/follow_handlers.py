"""Follow-related event handlers."""

import asyncio
from dataclasses import dataclass

from loguru import logger
from pydantic import BaseModel

from event_relay.event_bus import EventEnvelope, EventHandler
from event_relay.events.types import (
    FOLLOW_CREATED,
    FOLLOW_REQUEST_APPROVED,
    FOLLOW_REQUEST_CREATED,
    FOLLOW_REQUEST_REJECTED,
    FollowRequestPayload,
    UserFollowedPayload,
)
from event_relay.services import AnalyticsService, Notification, NotificationService


@dataclass(frozen=True)
class NotificationTemplate:
    payload_model: type[BaseModel]
    notification_type: str
    title: str
    body: str
    recipient_field: str
    data_fields: tuple[str, ...]


TEMPLATES: dict[str, NotificationTemplate] = {
    FOLLOW_CREATED: NotificationTemplate(
        UserFollowedPayload, "FOLLOW", "New Follower", "Someone started following you",
        recipient_field="following_id", data_fields=("follower_id", "follow_id"),
    ),
    FOLLOW_REQUEST_CREATED: NotificationTemplate(
        FollowRequestPayload, "FOLLOW_REQUEST", "New Follow Request", "Someone wants to follow you",
        recipient_field="recipient_id", data_fields=("requester_id", "request_id"),
    ),
    FOLLOW_REQUEST_APPROVED: NotificationTemplate(
        FollowRequestPayload, "FOLLOW_REQUEST_APPROVED", "Follow Request Approved", "Your follow request was approved",
        recipient_field="requester_id", data_fields=("recipient_id", "follow_id"),
    ),
    FOLLOW_REQUEST_REJECTED: NotificationTemplate(
        FollowRequestPayload, "FOLLOW_REQUEST_REJECTED", "Follow Request Rejected", "Your follow request was rejected",
        recipient_field="requester_id", data_fields=("recipient_id",),
    ),
}  # fmt: skip


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class FollowNotificationHandler(EventHandler):
    """Notify the affected user of follow activity and record it in analytics."""

    def __init__(self, notifications: NotificationService, analytics: AnalyticsService):
        self.notifications = notifications
        self.analytics = analytics

    @staticmethod
    def event_types() -> list[str]:
        return list(TEMPLATES)

    async def handle(self, envelope: EventEnvelope) -> None:
        template = TEMPLATES[envelope.name]
        payload = template.payload_model.model_validate(envelope.payload)
        logger.debug(f"Handling {envelope.name} (correlationId={envelope.metadata.correlation_id})")

        await asyncio.gather(
            self._notify(template, payload, envelope),
            self._track(payload, envelope),
        )

    async def _notify(self, template: NotificationTemplate, payload: BaseModel, envelope: EventEnvelope) -> None:
        notification = Notification(
            recipient_id=getattr(payload, template.recipient_field),
            type=template.notification_type,
            title=template.title,
            body=template.body,
            data={_camel(name): getattr(payload, name) for name in template.data_fields},
        )
        try:
            await self.notifications.send(notification)
        except Exception as e:
            logger.opt(exception=e).error(f"Failed to send {template.notification_type} notification: {e}")

    async def _track(self, payload: BaseModel, envelope: EventEnvelope) -> None:
        try:
            await self.analytics.track_event(envelope.name.replace(".", "_"), payload.model_dump(mode="json"))
        except Exception as e:
            logger.opt(exception=e).error(f"Failed to update analytics for {envelope.name}: {e}")
