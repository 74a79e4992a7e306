from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_THINKING_MESSAGE = "AI is thinking..."


class LyricsMode(str, Enum):
    ALL = "all"
    TITLE = "title"
    LYRICS = "lyrics"


class ReportVariant(str, Enum):
    CHAPTERED = "chaptered"
    BUNDLE = "bundle"


class GenerationState(BaseModel):
    """Single song's wizard progress; persisted with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    topic: str = ""
    expanded_topic: str = ""
    style: Optional[str] = None
    instruments: tuple[str, ...] = Field(default_factory=tuple)
    title: str = ""
    lyrics: str = ""
    cover_image_prompts: tuple[str, ...] = Field(default_factory=tuple)
    cover_image_urls: tuple[str, ...] = Field(default_factory=tuple)
    selected_cover_image_index: Optional[int] = None
    thinking_message: str = DEFAULT_THINKING_MESSAGE
    report_introduction: str = ""
    report_lyrics_snapshot: str = ""
    translated_lyrics: str = ""
    language: str = "English"
    language2: str = "English"

    @property
    def selected_cover_image_url(self) -> Optional[str]:
        index = self.selected_cover_image_index
        if index is None or not 0 <= index < len(self.cover_image_urls):
            return None
        return self.cover_image_urls[index]

    def to_storage(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


class Instrument(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    default: bool = False


class MusicStyleDefinition(BaseModel):
    description: str = ""
    instruments: list[Instrument] = Field(default_factory=list)


class StyleGroup(BaseModel):
    name: str
    description: str = ""
    styles: dict[str, MusicStyleDefinition] = Field(default_factory=dict)


class SongDraft(BaseModel):
    title: str
    lyrics: str


class TextValue(BaseModel):
    value: str = Field(default="", max_length=20_000)


class StyleValue(BaseModel):
    value: Optional[str] = Field(default=None, max_length=128)


class InstrumentsValue(BaseModel):
    instruments: list[str] = Field(default_factory=list)


class CoverSelection(BaseModel):
    index: Optional[int] = Field(default=None, ge=0)


class ApiKeyValue(BaseModel):
    api_key: str = Field(..., min_length=1, max_length=512)


class StyleSuggestion(BaseModel):
    style: Optional[str] = None


class ReportPreview(BaseModel):
    markdown: str
    html: str


class ReportRefresh(BaseModel):
    introduction_generated: bool = False
    translation_generated: bool = False
