"""High-level wizard orchestrator coordinating the store and the backends."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional, Sequence

from loguru import logger

from ..app.catalog import StyleCatalog
from ..app.models import (
    GenerationState,
    LyricsMode,
    ReportPreview,
    ReportRefresh,
    ReportVariant,
)
from ..app.settings import Settings
from ..app.state import GenerationStore
from ..app.storage import CredentialStore
from .bundle import BundleArtifact, CoverFetcher, build_bundle
from .characters import CharacterLibrary
from .exceptions import MissingCredentialError, PreconditionError
from .gemini import GeminiTextService
from .imagen import ImagenService
from .report import (
    build_bundle_markdown,
    build_chaptered_markdown,
    render_report_preview,
    report_refresh_needs,
)

ABOUT_FILE = "Noor-Brink.md"
ABOUT_UNAVAILABLE = "Artist information could not be loaded."

_LYRICS_MESSAGES = {
    LyricsMode.ALL: "Crafting title and lyrics...",
    LyricsMode.TITLE: "Rethinking the title...",
    LyricsMode.LYRICS: "Rewriting the lyrics...",
}


class WizardOrchestrator:
    """Runs each wizard step: checks inputs, calls backends, applies setters."""

    def __init__(
        self,
        settings: Settings,
        store: GenerationStore,
        catalog: StyleCatalog,
        credentials: CredentialStore,
        text_service: GeminiTextService,
        image_service: ImagenService,
        characters: CharacterLibrary,
        fetcher: CoverFetcher,
    ) -> None:
        self._settings = settings
        self._store = store
        self._catalog = catalog
        self._credentials = credentials
        self._text = text_service
        self._image = image_service
        self._characters = characters
        self._fetcher = fetcher
        self._about: Optional[str] = None

    @property
    def state(self) -> GenerationState:
        return self._store.state

    @property
    def catalog(self) -> StyleCatalog:
        return self._catalog

    def _require_api_key(self) -> str:
        api_key = self._credentials.get()
        if not api_key:
            raise MissingCredentialError(
                "Please set your API Key in the settings before generating content."
            )
        return api_key

    @contextmanager
    def _busy(self, message: str) -> Iterator[None]:
        self._store.set_is_loading(True, message)
        try:
            yield
        finally:
            self._store.set_is_loading(False)

    async def expand_topic(self) -> str:
        api_key = self._require_api_key()
        topic = self.state.topic
        if not topic:
            raise PreconditionError("Please go back and enter a topic first.")
        with self._busy("Expanding with AI..."):
            expanded = await self._text.expand_topic(api_key, topic)
            self._store.set_expanded_topic(expanded)
        return expanded

    async def suggest_style(self) -> Optional[str]:
        state = self.state
        api_key = self._credentials.get()
        styles = self._catalog.style_keys()
        if not state.topic or not api_key or not styles:
            return None
        with self._busy("Analyzing topic for style..."):
            suggested = await self._text.suggest_style(
                api_key, state.expanded_topic or state.topic, styles
            )
            if suggested:
                self._store.set_style(suggested)
                logger.info("AI suggested style {}", suggested)
        return suggested

    def select_style(self, style: Optional[str]) -> GenerationState:
        if style is not None and not self._catalog.is_loading and self._catalog.get(style) is None:
            raise PreconditionError(f"Unknown style: {style}")
        return self._store.set_style(style)

    def select_instruments(self, instruments: Sequence[str]) -> GenerationState:
        definition = self._catalog.get(self.state.style)
        if definition is not None:
            known = {instrument.name for instrument in definition.instruments}
            unknown = [name for name in instruments if name not in known]
            if unknown:
                raise PreconditionError(
                    f"Instruments not available for {self.state.style}: {', '.join(unknown)}"
                )
        return self._store.set_instruments(instruments)

    async def generate_lyrics(self, mode: LyricsMode = LyricsMode.ALL) -> GenerationState:
        state = self.state
        if not state.style:
            raise PreconditionError("Please select a style first.")
        api_key = self._require_api_key()
        with self._busy(_LYRICS_MESSAGES[mode]):
            draft = await self._text.generate_title_and_lyrics(
                api_key,
                topic=state.expanded_topic or state.topic,
                style=state.style,
                instruments=state.instruments,
            )
            if mode in (LyricsMode.ALL, LyricsMode.TITLE):
                self._store.set_title(draft.title)
            if mode in (LyricsMode.ALL, LyricsMode.LYRICS):
                self._store.set_lyrics(draft.lyrics)
        logger.info("Lyrics generation ({}) successful: {}", mode.value, draft.title)
        return self.state

    async def generate_cover(self) -> GenerationState:
        api_key = self._require_api_key()
        state = self.state
        with self._busy("Starting cover art generation..."):
            self._store.set_thinking_message("Generating image prompt...")
            characters = await self._characters.descriptions()
            prompt = await self._text.generate_image_prompt(
                api_key,
                topic=state.expanded_topic or state.topic,
                style=state.style,
                characters=characters,
            )
            self._store.add_cover_image_prompt(prompt)

            self._store.set_thinking_message("Creating image with Imagen...")
            url = await self._image.generate_image(api_key, prompt)
            self._store.add_cover_image_url(url)
        logger.info("Cover art {} generated", len(self.state.cover_image_urls))
        return self.state

    async def _about_content(self) -> str:
        if self._about is None:
            path = self._settings.assets_dir / ABOUT_FILE
            try:
                text = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except OSError:
                logger.exception("Failed to load about content for report from {}", path)
                self._about = ABOUT_UNAVAILABLE
            else:
                self._about = text.replace("{year}", str(datetime.now().year))
        return self._about

    async def refresh_report(self, force: bool = False) -> ReportRefresh:
        """Regenerate stale report content (introduction and translation)."""
        state = self.state
        needs = report_refresh_needs(state, force)
        result = ReportRefresh()
        if not needs.any:
            return result

        api_key = self._credentials.get()
        if not api_key:
            raise MissingCredentialError("An API key is required to generate report content.")

        with self._busy("Generating report content..."):
            await self._about_content()
            if needs.translation:
                translation = await self._text.translate_lyrics_to_english(api_key, state.lyrics)
                self._store.set_translated_lyrics(translation)
                result.translation_generated = True
            if needs.introduction:
                introduction = await self._text.generate_report_introduction(
                    api_key,
                    title=state.title,
                    topic=state.expanded_topic or state.topic,
                    lyrics=state.lyrics,
                )
                self._store.set_report_introduction(introduction)
                result.introduction_generated = True
            self._store.set_report_lyrics_snapshot(state.lyrics)
        return result

    async def report(self, variant: ReportVariant = ReportVariant.CHAPTERED) -> ReportPreview:
        """Markdown and preview HTML; cover placeholders resolve to stored urls."""
        if variant is ReportVariant.BUNDLE:
            state = self.state
            markdown = build_bundle_markdown(state, self._catalog)
        else:
            about = await self._about_content()
            state = self.state
            markdown = build_chaptered_markdown(state, self._catalog, about)
        return ReportPreview(markdown=markdown, html=render_report_preview(markdown, state))

    async def create_bundle(self) -> BundleArtifact:
        return await build_bundle(self.state, self._catalog, self._fetcher)
