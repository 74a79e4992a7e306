"""Text generation backed by Gemini through the google-genai SDK."""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Mapping, Optional, Sequence

from google import genai
from google.genai import types
from loguru import logger

from ..app.models import SongDraft
from ..app.settings import Settings
from .exceptions import GenerationFailure, InvalidResponseFormat, MissingCredentialError

ClientFactory = Callable[[str], Any]

DEFAULT_TOPIC = "An uplifting song about friendship and creativity."
DEFAULT_COVER_TOPIC = "Two female musicians creating music together"
DEFAULT_COVER_STYLE = "Pop"

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")

EXPAND_TOPIC_PROMPT = (
    "You are a creative muse. Expand the following user-provided topic or keywords into a "
    "rich, descriptive paragraph of about 300-500 words. This will be used as the basis for "
    "a song. Focus on imagery, emotion, and potential narrative arcs. Do not write lyrics, "
    'just the underlying story and mood. User topic: "{topic}"'
)

SUGGEST_STYLE_PROMPT = """From the following list of music styles, which one best fits the song topic provided below?
Your answer must be ONLY the style name, exactly as it appears in the list. Do not add any other words, punctuation, or explanations.

Available Styles:
{styles}

Song Topic:
"{topic}"
"""

LYRICS_PROMPT = """You are an expert songwriter creating lyrics for a song to be performed by a female duet (Miranda Noor and Annelies Brink).
The song is in the style of: {style}.
It should feature the following instruments: {instruments}.
The song's theme is based on this story:
---
{topic}
---
Your task is to generate a suitable song title and the full song lyrics. Keep the structure concise so the song fits in about 2-3 minutes including instrumentals, for example: [Intro], [Verse 1], [Chorus], [Verse 2], [Chorus], [Bridge], [Instrumental Solo], [Chorus], [Outro].

Follow these formatting rules:
- Use tags like [Intro], [Verse], [Chorus], [Bridge], [Outro] to structure the song.
- Indicate non-lyrical vocalizations like (oohs), (aahs).
- Use [Spoken Word] for spoken parts.
- Use *sound effect* for sound effects, like *thunder clap*.
- Label parts for each singer: [Miranda], [Annelies], or [Duet].

All musical or performance instructions MUST be enclosed in [] brackets. The lyrics should only contain the words to be sung and the bracketed instructions.

Output a JSON object with two keys: "title" and "lyrics". Do not include any other text outside of the JSON object."""

IMAGE_PROMPT = """You are an expert prompt engineer for text-to-image models like Imagen.
Create a single, detailed image prompt for a song's cover art.

Core subject: the image MUST feature a female music duet (two young women) named Miranda and Annelies, performing together.
- Miranda's description: {miranda}
- Annelies's description: {annelies}

Theme and background: the song's theme is "{topic}". The background and environment must subtly reflect this theme, integrated into the scene rather than pasted behind it.

Musical style: {style}. Their clothing, expressions, and the overall mood should reflect this style.

Use descriptive keywords text-to-image models understand (composition, lighting, detail, mood).

Output only the final prompt as a single line of text."""

INTRODUCTION_PROMPT = """You are a music journalist writing the opening chapter of a report about a new song by the duet Miranda Noor and Annelies Brink.
Song title: "{title}"
Story behind the song:
---
{topic}
---
Lyrics:
---
{lyrics}
---
Write two or three warm, engaging paragraphs about the story, mood and meaning of the song. Do not quote the lyrics at length and do not use headings. Output plain text only."""

TRANSLATION_PROMPT = """Translate the following song lyrics into English.
Keep the line structure and keep any bracketed tags such as [Chorus] unchanged.
Lines that are already in English stay as they are.
Output only the translated lyrics.

Lyrics:
---
{lyrics}
---"""

_SONG_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "title": types.Schema(
            type=types.Type.STRING,
            description="A creative and fitting title for the song.",
        ),
        "lyrics": types.Schema(
            type=types.Type.STRING,
            description=(
                "The full lyrics, with line breaks, structural tags like [Verse] and singer "
                "tags like [Miranda]. All instructions must be in brackets."
            ),
        ),
    },
    required=["title", "lyrics"],
)


def _default_client_factory(api_key: str) -> Any:
    return genai.Client(api_key=api_key)


def parse_song_payload(text: str) -> SongDraft:
    """Decode the title/lyrics JSON object, tolerating a fenced reply."""
    cleaned = text.strip()
    match = _FENCED_JSON.search(cleaned)
    if match and match.group(1):
        cleaned = match.group(1)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error(
            "Error parsing Gemini JSON response: {} | cleaned={!r} | original={!r}",
            exc,
            cleaned,
            text,
        )
        raise InvalidResponseFormat("AI returned invalid data format. Please try again.") from exc

    if (
        not isinstance(parsed, dict)
        or not isinstance(parsed.get("title"), str)
        or not isinstance(parsed.get("lyrics"), str)
    ):
        logger.error(
            "Parsed JSON has incorrect format or missing fields: {!r} | original={!r}",
            parsed,
            text,
        )
        raise InvalidResponseFormat(
            "AI returned data with missing title or lyrics. Please try again."
        )
    return SongDraft(title=parsed["title"], lyrics=parsed["lyrics"])


class GeminiTextService:
    """Wraps the text model calls used by the wizard."""

    def __init__(
        self,
        settings: Settings,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory or _default_client_factory

    @property
    def model_id(self) -> str:
        return self._settings.text_model_id

    def _client(self, api_key: Optional[str]) -> Any:
        if not api_key:
            raise MissingCredentialError("API Key is required.")
        return self._client_factory(api_key)

    async def _generate(
        self,
        api_key: Optional[str],
        header: str,
        prompt: str,
        config: Optional[types.GenerateContentConfig] = None,
    ) -> str:
        client = self._client(api_key)
        logger.debug("Gemini request: {} (model={})", header, self.model_id)
        try:
            response = await client.aio.models.generate_content(
                model=self.model_id,
                contents=prompt,
                config=config,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Gemini error during {}", header)
            raise GenerationFailure(f"{header} failed: {exc}") from exc
        text = getattr(response, "text", None) or ""
        logger.debug("Gemini response: {} ({} chars)", header, len(text))
        return text

    async def _generate_text(self, api_key: Optional[str], header: str, prompt: str) -> str:
        text = (await self._generate(api_key, header, prompt)).strip()
        if not text:
            logger.error("Gemini returned an empty response for {}", header)
            raise GenerationFailure("AI returned an empty response. Please try again.")
        return text

    async def expand_topic(self, api_key: Optional[str], topic: str) -> str:
        return await self._generate_text(
            api_key, "expand topic", EXPAND_TOPIC_PROMPT.format(topic=topic)
        )

    async def suggest_style(
        self,
        api_key: Optional[str],
        topic: str,
        styles: Sequence[str],
    ) -> Optional[str]:
        prompt = SUGGEST_STYLE_PROMPT.format(styles=", ".join(styles), topic=topic)
        config = types.GenerateContentConfig(temperature=0.1, top_k=1)
        try:
            suggested = (await self._generate(api_key, "suggest style", prompt, config)).strip()
        except GenerationFailure as exc:
            logger.warning("Style suggestion unavailable: {}", exc)
            return None
        if suggested in styles:
            return suggested
        logger.warning("Suggested style not in list or invalid response: {!r}", suggested)
        return None

    async def generate_title_and_lyrics(
        self,
        api_key: Optional[str],
        *,
        topic: str,
        style: str,
        instruments: Sequence[str],
    ) -> SongDraft:
        prompt = LYRICS_PROMPT.format(
            style=style,
            instruments=", ".join(instruments),
            topic=topic or DEFAULT_TOPIC,
        )
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=_SONG_SCHEMA,
        )
        text = await self._generate(api_key, "generate title & lyrics", prompt, config)
        if not text.strip():
            logger.error("Gemini returned an empty title & lyrics response")
            raise GenerationFailure("AI returned an empty response. Please try again.")
        return parse_song_payload(text)

    async def generate_image_prompt(
        self,
        api_key: Optional[str],
        *,
        topic: str,
        style: Optional[str],
        characters: Mapping[str, str],
    ) -> str:
        prompt = IMAGE_PROMPT.format(
            miranda=characters.get("miranda", ""),
            annelies=characters.get("annelies", ""),
            topic=topic or DEFAULT_COVER_TOPIC,
            style=style or DEFAULT_COVER_STYLE,
        )
        return await self._generate_text(api_key, "generate image prompt", prompt)

    async def generate_report_introduction(
        self,
        api_key: Optional[str],
        *,
        title: str,
        topic: str,
        lyrics: str,
    ) -> str:
        prompt = INTRODUCTION_PROMPT.format(title=title, topic=topic or DEFAULT_TOPIC, lyrics=lyrics)
        return await self._generate_text(api_key, "generate report introduction", prompt)

    async def translate_lyrics_to_english(self, api_key: Optional[str], lyrics: str) -> str:
        return await self._generate_text(
            api_key, "translate lyrics", TRANSLATION_PROMPT.format(lyrics=lyrics)
        )
