"""Block-related event handlers.

The blocked user is never notified, neither on block nor on unblock.
"""

import asyncio

from loguru import logger

from event_relay.event_bus import EventEnvelope, EventHandler
from event_relay.events.types import USER_BLOCKED, USER_UNBLOCKED, UserBlockedPayload
from event_relay.services import FollowService, RecommendationService

BLOCK_REASON = "user_blocked"


class BlockEventHandler(EventHandler):
    """Drop follows between the two users on block and refresh the blocker's recommendations."""

    def __init__(self, follows: FollowService | None, recommendations: RecommendationService):
        self.follows = follows
        self.recommendations = recommendations

    @staticmethod
    def event_types() -> list[str]:
        return [USER_BLOCKED, USER_UNBLOCKED]

    async def handle(self, envelope: EventEnvelope) -> None:
        payload = UserBlockedPayload.model_validate(envelope.payload)
        logger.info(f"Handling {envelope.name}: {payload.blocker_id} -> {payload.blocked_id}")

        if envelope.name == USER_BLOCKED:
            await self._remove_follows(payload)
        await self._refresh_recommendations(payload.blocker_id)

    async def _remove_follows(self, payload: UserBlockedPayload) -> None:
        if self.follows is None:
            logger.debug("No follow service configured, keeping follows of blocked users")
            return

        await asyncio.gather(
            self._unfollow(payload.blocker_id, payload.blocked_id),
            self._remove_follower(payload.blocked_id, payload.blocker_id),
        )

    async def _unfollow(self, follower_id: str, following_id: str) -> None:
        try:
            if await self.follows.is_following(follower_id, following_id):
                await self.follows.unfollow(follower_id, following_id)
                logger.debug(f"{follower_id} no longer follows blocked user {following_id}")
        except Exception as e:
            logger.opt(exception=e).error(f"Failed to unfollow {following_id} for {follower_id}: {e}")

    async def _remove_follower(self, follower_id: str, following_id: str) -> None:
        try:
            if await self.follows.is_following(follower_id, following_id):
                await self.follows.remove_follow(follower_id, following_id, BLOCK_REASON)
                logger.debug(f"Removed follow of {following_id} by blocked user {follower_id}")
        except Exception as e:
            logger.opt(exception=e).error(f"Failed to remove follow of {following_id} by {follower_id}: {e}")

    async def _refresh_recommendations(self, user_id: str) -> None:
        try:
            await self.recommendations.invalidate_user_recommendations(user_id)
        except Exception as e:
            logger.opt(exception=e).error(f"Failed to refresh recommendations of {user_id}: {e}")
