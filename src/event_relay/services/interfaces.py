"""Interfaces of the external collaborators the core calls into.

Every method is a single, fallible, retryless async call. Handlers wrap each
call in local failure isolation; nothing here is retried by the core except
through outbox redelivery.
"""

from typing import Any, Protocol

from pydantic import BaseModel, Field


class SearchDocument(BaseModel):
    """Document pushed to the search index."""

    id: str
    type: str
    content: str
    language: str | None = None
    song_id: str | None = None


class Notification(BaseModel):
    """Notification delivered to a single user."""

    recipient_id: str
    type: str
    title: str | None = None
    body: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class Lyrics(BaseModel):
    id: str
    content: str
    language: str
    song_id: str | None = None
    contributor_id: str | None = None


class Translation(BaseModel):
    id: str
    original_lyrics_id: str
    language: str
    content: str
    song_id: str | None = None
    is_automatic: bool = False
    translator_id: str | None = None


class NewTranslation(BaseModel):
    original_lyrics_id: str
    language: str
    content: str
    song_id: str | None = None
    is_automatic: bool = True


class ReviewRequest(BaseModel):
    id: str
    translation_id: str
    original_lyrics_id: str
    language: str


class SearchService(Protocol):
    async def index(self, document: SearchDocument) -> None: ...


class NotificationService(Protocol):
    async def send(self, notification: Notification) -> None: ...


class AnalyticsService(Protocol):
    async def track_event(self, name: str, properties: dict[str, Any]) -> None: ...


class TranslationService(Protocol):
    async def translate_text(self, text: str, source_language: str, target_language: str) -> str: ...


class FollowService(Protocol):
    """Follow graph operations used when a user blocks another.

    ``unfollow`` acts on behalf of the follower; ``remove_follow`` is the
    administrative removal of a follow the acting user does not own.
    """

    async def is_following(self, follower_id: str, following_id: str) -> bool: ...

    async def unfollow(self, follower_id: str, following_id: str) -> None: ...

    async def remove_follow(self, follower_id: str, following_id: str, reason: str) -> None: ...


class RecommendationService(Protocol):
    async def invalidate_user_recommendations(self, user_id: str) -> None: ...


class LyricsStore(Protocol):
    """Lyrics persistence as seen by the translation workflow.

    ``create_translation`` must persist the translation and record a
    ``lyrics.translated`` outbox entry in one transaction, and must raise
    ``DuplicateTranslationError`` when a translation for that language
    already exists. Likewise ``create_review_request`` must raise
    ``DuplicateReviewRequestError`` when the translation already has one.
    """

    async def find_lyrics(self, lyrics_id: str) -> Lyrics | None: ...

    async def find_translation(self, lyrics_id: str, language: str) -> Translation | None: ...

    async def create_translation(
        self,
        translation: NewTranslation,
        *,
        correlation_id: str | None = None,
        causation_id: str | None = None,
    ) -> Translation: ...

    async def find_review_request(self, translation_id: str) -> ReviewRequest | None: ...

    async def create_review_request(self, translation_id: str, original_lyrics_id: str, language: str) -> ReviewRequest: ...
