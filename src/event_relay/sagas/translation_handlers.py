"""Command handlers of the translation workflow.

Both handlers are idempotent: they check the lyrics store before doing any
work, so replaying a command after a redelivered event changes nothing.
"""

import asyncio

from loguru import logger

from event_relay.exceptions import DuplicateReviewRequestError, DuplicateTranslationError, ResourceNotFoundError
from event_relay.services import Lyrics, LyricsStore, NewTranslation, TranslationService

from .commands import ReviewAutomaticTranslationPayload, TranslateAdditionalLanguagesPayload
from .core import Command, CommandHandler


class TranslateAdditionalLanguagesHandler(CommandHandler):
    """Create automatic translations for every requested language missing one.

    Languages are processed concurrently and independently; a failed language
    is logged and will be attempted again on the next delivery of the command.
    """

    def __init__(self, lyrics_store: LyricsStore, translation_service: TranslationService):
        self.lyrics_store = lyrics_store
        self.translation_service = translation_service

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    async def execute(self, command: Command) -> None:
        payload = TranslateAdditionalLanguagesPayload.model_validate(command.payload)

        lyrics = await self.lyrics_store.find_lyrics(payload.lyrics_id)
        if lyrics is None:
            raise ResourceNotFoundError("Lyrics", payload.lyrics_id)

        languages = [
            language
            for language in dict.fromkeys(payload.target_languages)
            if language != payload.source_language
        ]
        logger.info(f"Translating lyrics {lyrics.id} into {', '.join(languages) or 'no languages'}")

        await asyncio.gather(*(self._translate(lyrics, payload, language, command) for language in languages))

    async def _translate(
        self,
        lyrics: Lyrics,
        payload: TranslateAdditionalLanguagesPayload,
        language: str,
        command: Command,
    ) -> None:
        try:
            if await self.lyrics_store.find_translation(lyrics.id, language) is not None:
                logger.debug(f"Translation of lyrics {lyrics.id} into '{language}' already exists, skipping")
                return

            content = await self.translation_service.translate_text(lyrics.content, payload.source_language, language)
            await self.lyrics_store.create_translation(
                NewTranslation(
                    original_lyrics_id=lyrics.id,
                    language=language,
                    content=content,
                    song_id=payload.song_id,
                    is_automatic=True,
                ),
                correlation_id=command.metadata.correlation_id,
                causation_id=command.command_id,
            )
            logger.info(f"Created automatic '{language}' translation of lyrics {lyrics.id}")
        except DuplicateTranslationError:
            logger.debug(f"Translation of lyrics {lyrics.id} into '{language}' was created concurrently")
        except Exception as e:
            logger.opt(exception=e).error(f"Failed to translate lyrics {lyrics.id} into '{language}': {e}")


class ReviewAutomaticTranslationHandler(CommandHandler):
    """Create a review request for an automatic translation, once."""

    def __init__(self, lyrics_store: LyricsStore):
        self.lyrics_store = lyrics_store

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    async def execute(self, command: Command) -> None:
        payload = ReviewAutomaticTranslationPayload.model_validate(command.payload)

        if await self.lyrics_store.find_review_request(payload.translation_id) is not None:
            logger.debug(f"Review request for translation {payload.translation_id} already exists")
            return

        try:
            await self.lyrics_store.create_review_request(
                payload.translation_id, payload.original_lyrics_id, payload.language
            )
        except DuplicateReviewRequestError:
            logger.debug(f"Review request for translation {payload.translation_id} was created concurrently")
            return
        logger.info(f"Queued translation {payload.translation_id} ('{payload.language}') for review")
