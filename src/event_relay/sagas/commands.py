"""Command names and payloads of the translation workflow."""

from pydantic import BaseModel, ConfigDict, Field

TRANSLATE_ADDITIONAL_LANGUAGES = "translate-additional-languages"
REVIEW_AUTOMATIC_TRANSLATION = "review-automatic-translation"


class TranslateAdditionalLanguagesPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    lyrics_id: str
    song_id: str | None = None
    source_language: str
    target_languages: list[str] = Field(..., min_length=1)
    initiated_by: str | None = None


class ReviewAutomaticTranslationPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    translation_id: str
    original_lyrics_id: str
    language: str
