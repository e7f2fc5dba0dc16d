"""Event names and payload models.

Payloads travel as plain JSON inside ``EventEnvelope.payload``; handlers
validate them into these models on receipt.
"""

from pydantic import BaseModel, ConfigDict

LYRICS_CREATED = "lyrics.created"
LYRICS_VERIFIED = "lyrics.verified"
LYRICS_TRANSLATED = "lyrics.translated"

FOLLOW_CREATED = "follow.created"
FOLLOW_REQUEST_CREATED = "follow.request.created"
FOLLOW_REQUEST_APPROVED = "follow.request.approved"
FOLLOW_REQUEST_REJECTED = "follow.request.rejected"

USER_BLOCKED = "user.blocked"
USER_UNBLOCKED = "user.unblocked"


class EventPayload(BaseModel):
    """Base for payload models; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class LyricsCreatedPayload(EventPayload):
    id: str
    content: str
    language: str
    song_id: str | None = None


class LyricsVerifiedPayload(EventPayload):
    """Payload of ``lyrics.verified``.

    ``language`` is the language the verified lyrics are written in and the
    source language for automatic translations.
    """

    id: str
    song_id: str | None = None
    language: str = "en"
    verified_by_id: str | None = None
    contributor_id: str | None = None


class LyricsTranslatedPayload(EventPayload):
    """Payload of ``lyrics.translated``; ``translator_id`` is None for automatic translations."""

    id: str
    original_lyrics_id: str
    language: str
    song_id: str | None = None
    translator_id: str | None = None


class UserFollowedPayload(EventPayload):
    follower_id: str
    following_id: str
    follow_id: str | None = None


class FollowRequestPayload(EventPayload):
    request_id: str
    requester_id: str
    recipient_id: str
    follow_id: str | None = None


class UserBlockedPayload(EventPayload):
    """Payload of ``user.blocked`` and ``user.unblocked``."""

    blocker_id: str
    blocked_id: str
