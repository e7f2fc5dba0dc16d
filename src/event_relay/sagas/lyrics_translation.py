"""Sagas driving automatic lyrics translation.

``lyrics.verified``   -> ``translate-additional-languages`` for every target
                         language other than the source language
``lyrics.translated`` -> ``review-automatic-translation`` when the translation
                         was produced without a human translator
"""

from collections.abc import Iterable

from event_relay.event_bus import EventEnvelope
from event_relay.events.types import LYRICS_TRANSLATED, LYRICS_VERIFIED, LyricsTranslatedPayload, LyricsVerifiedPayload

from .commands import (
    REVIEW_AUTOMATIC_TRANSLATION,
    TRANSLATE_ADDITIONAL_LANGUAGES,
    ReviewAutomaticTranslationPayload,
    TranslateAdditionalLanguagesPayload,
)
from .core import Command, Saga

DEFAULT_TARGET_LANGUAGES = ("es", "fr", "de")


def verified_lyrics_translation_saga(target_languages: Iterable[str] = DEFAULT_TARGET_LANGUAGES) -> Saga:
    """Request translations of freshly verified lyrics."""
    languages = list(dict.fromkeys(language.lower() for language in target_languages))

    def transform(envelope: EventEnvelope) -> Command | None:
        payload = LyricsVerifiedPayload.model_validate(envelope.payload)
        source = payload.language.lower()
        targets = [language for language in languages if language != source]
        if not targets:
            return None

        return Command.from_event(
            TRANSLATE_ADDITIONAL_LANGUAGES,
            TranslateAdditionalLanguagesPayload(
                lyrics_id=payload.id,
                song_id=payload.song_id,
                source_language=source,
                target_languages=targets,
                initiated_by=payload.verified_by_id,
            ),
            envelope,
        )

    return Saga(
        name="verified-lyrics-translation",
        event_types=(LYRICS_VERIFIED,),
        transform=transform,
    )


def _is_automatic(envelope: EventEnvelope) -> bool:
    return LyricsTranslatedPayload.model_validate(envelope.payload).translator_id is None


def _to_review_command(envelope: EventEnvelope) -> Command:
    payload = LyricsTranslatedPayload.model_validate(envelope.payload)
    return Command.from_event(
        REVIEW_AUTOMATIC_TRANSLATION,
        ReviewAutomaticTranslationPayload(
            translation_id=payload.id,
            original_lyrics_id=payload.original_lyrics_id,
            language=payload.language,
        ),
        envelope,
    )


def translation_quality_check_saga() -> Saga:
    """Queue automatic translations for human review."""
    return Saga(
        name="translation-quality-check",
        event_types=(LYRICS_TRANSLATED,),
        transform=_to_review_command,
        predicate=_is_automatic,
    )
