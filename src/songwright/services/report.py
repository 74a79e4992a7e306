"""Report assembly for finished songs.

Two Markdown layouts are produced from the same state: a compact one that
ships inside the zip bundle, and a chaptered one with an introduction,
karaoke lyrics and an optional English translation. Both are pure
functions of their inputs and accept partially filled state.
"""

from __future__ import annotations

import html
import itertools
import re
from dataclasses import dataclass
from typing import List, Optional

from ..app.catalog import StyleCatalog
from ..app.models import GenerationState
from .markdown import cover_image_resolver, cover_placeholder, karaoke_markup, markdown_to_html

NO_TITLE = "No content generated yet."
NO_STYLE = "N/A"
NO_INSTRUMENTS = "No instruments selected."
NO_INSTRUMENT_DESCRIPTION = "No description available."
NO_LYRICS = "No lyrics generated."
NO_COVERS = "No cover art generated."
NO_INTRODUCTION = "No introduction available."
NO_ABOUT = "Artist information not available."
UNTITLED = "Untitled"

_BRACKETED = re.compile(r"\[.*?\]")
_PARENTHETICAL = re.compile(r"\(.*?\)")
_SOUND_EFFECT = re.compile(r"\*.*?\*")
_LEADING_WHITESPACE = re.compile(r"^[ \t]+", re.MULTILINE)
_FILENAME_UNSAFE = re.compile(r"[^a-z0-9]", re.IGNORECASE)

_DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Song Report: {title}</title>
    <style>
        body {{ font-family: sans-serif; background: #f9fafb; color: #1f2937; }}
        main {{ max-width: 48rem; margin: 0 auto; padding: 2rem; }}
        pre {{ background: #e5e7eb; padding: 1rem; border-radius: 6px; white-space: pre-wrap; }}
        img {{ max-width: 100%; max-height: 80vh; height: auto; border-radius: 8px; margin: 1rem auto; display: block; }}
        blockquote {{ border-left: 4px solid #d1d5db; padding-left: 1rem; font-style: italic; }}
    </style>
</head>
<body>
    <main>
        <article>
{body}
        </article>
    </main>
</body>
</html>
"""


def normalize_indentation(text: str) -> str:
    return _LEADING_WHITESPACE.sub("", text.strip())


def plain_lyrics(lyrics: str, separator: str = "\n") -> str:
    """Singable text: stage directions, ad-libs and sound effects removed."""
    if not lyrics:
        return ""
    stripped = _SOUND_EFFECT.sub("", _PARENTHETICAL.sub("", _BRACKETED.sub("", lyrics)))
    lines = [line.strip() for line in stripped.split("\n")]
    return separator.join(line for line in lines if line)


def song_has_non_english(language: str, language2: str) -> bool:
    return language.strip().lower() != "english" or language2.strip().lower() != "english"


def is_bilingual(state: GenerationState) -> bool:
    return state.language.strip().lower() != state.language2.strip().lower()


def has_translation(state: GenerationState) -> bool:
    return song_has_non_english(state.language, state.language2) and bool(state.translated_lyrics)


@dataclass(frozen=True)
class RefreshNeeds:
    introduction: bool
    translation: bool

    @property
    def any(self) -> bool:
        return self.introduction or self.translation


def report_refresh_needs(state: GenerationState, force: bool = False) -> RefreshNeeds:
    lyrics_changed = state.lyrics != state.report_lyrics_snapshot
    introduction = force or (
        bool(state.title) and (not state.report_introduction or lyrics_changed)
    )
    translation = song_has_non_english(state.language, state.language2) and (
        force or not state.translated_lyrics or lyrics_changed
    )
    return RefreshNeeds(introduction=introduction, translation=translation)


def _style_lines(state: GenerationState, catalog: StyleCatalog) -> List[str]:
    lines = [f"**Style:** {state.style or NO_STYLE}"]
    definition = catalog.get(state.style)
    if definition is not None and definition.description:
        lines.extend(["", f"> *{definition.description}*"])
    return lines


def _instrument_lines(state: GenerationState, catalog: StyleCatalog) -> List[str]:
    if not state.instruments:
        return [NO_INSTRUMENTS]
    lines = []
    for name in state.instruments:
        instrument = catalog.find_instrument(state.style, name)
        description = instrument.description if instrument and instrument.description else None
        lines.append(f"- **{name}:** {description or NO_INSTRUMENT_DESCRIPTION}")
    return lines


def _fenced(text: str) -> List[str]:
    return ["```", text, "```"]


def build_bundle_markdown(state: GenerationState, catalog: StyleCatalog) -> str:
    covers = [
        f"![Cover Art {index + 1}]({cover_placeholder(index)})"
        for index in range(len(state.cover_image_urls))
    ]
    lines: List[str] = [
        f"# {state.title or NO_TITLE}",
        "",
        "## Style & Instruments",
        "",
        *_style_lines(state, catalog),
        "",
        "### Instruments",
        "",
        *_instrument_lines(state, catalog),
        "",
        "---",
        "",
        "## Lyrics",
        "",
        *_fenced(state.lyrics or NO_LYRICS),
        "",
        "---",
        "",
        "## Cover Art",
        "",
        "\n\n".join(covers) if covers else NO_COVERS,
    ]
    return normalize_indentation("\n".join(lines))


def _karaoke_block(state: GenerationState) -> str:
    singable = plain_lyrics(state.lyrics)
    return karaoke_markup(singable.split("\n") if singable else [NO_LYRICS])


def build_chaptered_markdown(
    state: GenerationState,
    catalog: StyleCatalog,
    about: Optional[str] = None,
) -> str:
    chapters = itertools.count(1)
    title = state.title or UNTITLED
    lines: List[str] = [
        f"# Song Report: {title}",
        "",
        f"## Chapter {next(chapters)}: The Story Behind the Song",
        "",
        state.report_introduction or NO_INTRODUCTION,
        "",
        "---",
        "",
        f"## Chapter {next(chapters)}: Musical Blueprint",
        "",
        *_style_lines(state, catalog),
        "",
        "### Instruments",
        "",
        *_instrument_lines(state, catalog),
        "",
        "---",
        "",
        f"## Chapter {next(chapters)}: The Libretto",
        "",
        f"**Title:** {title}",
        "",
        "### Formatted Lyrics",
        "",
        *_fenced(state.lyrics or NO_LYRICS),
        "",
        "---",
        "",
        f"## Chapter {next(chapters)}: The Karaoke Session",
        "",
        "### Karaoke Lyrics",
        "",
        _karaoke_block(state),
    ]
    if has_translation(state):
        languages = (
            f"{state.language}, {state.language2}" if is_bilingual(state) else state.language
        )
        lines.extend(
            [
                "",
                "---",
                "",
                f"## Chapter {next(chapters)}: English Translation",
                "",
                f"**Original Language(s):** {languages}",
                "",
                "### Translated Lyrics",
                "",
                *_fenced(state.translated_lyrics),
            ]
        )
    lines.extend(
        [
            "",
            "---",
            "",
            f"## Chapter {next(chapters)}: About the Artists",
            "",
            about or NO_ABOUT,
        ]
    )
    return normalize_indentation("\n".join(lines))


def render_report_preview(markdown: str, state: GenerationState) -> str:
    return markdown_to_html(markdown, image_resolver=cover_image_resolver(state.cover_image_urls))


def render_report_document(markdown: str, title: str) -> str:
    body = markdown_to_html(markdown)
    return _DOCUMENT_TEMPLATE.format(
        title=html.escape(title or UNTITLED),
        body=body,
    )


def report_filename(title: str, suffix: str, fallback: str = "song_report") -> str:
    stem = _FILENAME_UNSAFE.sub("_", title).lower() or fallback
    return f"{stem}{suffix}"
