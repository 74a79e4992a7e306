from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Dict, Optional

from loguru import logger

CHARACTER_FILES = {
    "miranda": "Miranda_Noor.md",
    "annelies": "Annelies_Brink.md",
}

FALLBACK_DESCRIPTIONS = {
    "miranda": (
        "A young woman of mixed Indian and Dutch heritage, with deep espresso black hair "
        "with auburn highlights, and warm dark hazel eyes. She plays a bass guitar."
    ),
    "annelies": (
        "A young woman of Dutch heritage, with light brown, shoulder-length hair and blue "
        "almond-shaped eyes. She has a calm and creative presence."
    ),
}

BODY_DETAILS_MARKER = "### Body Details"
MISSING_DESCRIPTION = "Physical description not found."

_BOLD_LABEL = re.compile(r"- \*\*(.*?)\*\*:")
_WHITESPACE = re.compile(r"\s+")


def parse_description(markdown: str) -> str:
    """Flatten the "Body Details" section into a single prompt-friendly line."""
    start = markdown.find(BODY_DETAILS_MARKER)
    if start == -1:
        return MISSING_DESCRIPTION
    section = markdown[start + len(BODY_DETAILS_MARKER) :]
    end = section.find("\n## ")
    if end != -1:
        section = section[:end]
    section = _BOLD_LABEL.sub(r"\1:", section)
    section = section.replace(";", ",").replace("*", "")
    return _WHITESPACE.sub(" ", section).strip()


class CharacterLibrary:
    """Physical descriptions of the duet, used to enrich cover prompts."""

    def __init__(self, assets_dir: Path) -> None:
        self._assets_dir = assets_dir
        self._cache: Optional[Dict[str, str]] = None

    async def descriptions(self) -> Dict[str, str]:
        if self._cache is not None:
            return dict(self._cache)
        try:
            sources = await asyncio.gather(
                *(
                    asyncio.to_thread((self._assets_dir / filename).read_text, encoding="utf-8")
                    for filename in CHARACTER_FILES.values()
                )
            )
        except OSError:
            logger.exception("Error loading character descriptions from {}", self._assets_dir)
            return dict(FALLBACK_DESCRIPTIONS)
        self._cache = {
            name: parse_description(markdown)
            for name, markdown in zip(CHARACTER_FILES.keys(), sources)
        }
        return dict(self._cache)
