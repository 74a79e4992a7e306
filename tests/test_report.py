from __future__ import annotations

import re

from songwright.app.catalog import StyleCatalog
from songwright.app.models import GenerationState, Instrument, MusicStyleDefinition, StyleGroup
from songwright.services.report import (
    NO_ABOUT,
    NO_COVERS,
    NO_INSTRUMENTS,
    NO_INTRODUCTION,
    NO_LYRICS,
    NO_STYLE,
    NO_TITLE,
    build_bundle_markdown,
    build_chaptered_markdown,
    normalize_indentation,
    plain_lyrics,
    render_report_document,
    render_report_preview,
    report_filename,
    report_refresh_needs,
)


def _catalog() -> StyleCatalog:
    return StyleCatalog(
        [
            StyleGroup(
                name="Jazz & Blues",
                styles={
                    "Jazz": MusicStyleDefinition(
                        description="Smooth",
                        instruments=[Instrument(name="Piano", description="Keys")],
                    )
                },
            )
        ]
    )


def _rain() -> GenerationState:
    return GenerationState(
        title="Rain",
        lyrics="[Verse]\nFalling down",
        style="Jazz",
        instruments=["Piano"],
        cover_image_urls=["blob://1"],
        selected_cover_image_index=0,
    )


def test_bundle_report_end_to_end() -> None:
    state = _rain()
    markdown = build_bundle_markdown(state, _catalog())
    lines = markdown.split("\n")
    assert "# Rain" in lines
    assert "**Style:** Jazz" in lines
    assert "> *Smooth*" in lines
    assert "- **Piano:** Keys" in lines
    assert "cover-1.png" in markdown

    rendered = render_report_preview(markdown, state)
    images = re.findall(r'<img src="([^"]*)"', rendered)
    assert images == ["blob://1"]
    assert "<h1>Rain</h1>" in rendered
    assert "<pre>[Verse]\nFalling down</pre>" in rendered
    assert "<li><strong>Piano:</strong> Keys</li>" in rendered


def test_empty_state_renders_fallbacks() -> None:
    state = GenerationState()
    catalog = StyleCatalog([])
    markdown = build_bundle_markdown(state, catalog)
    for fallback in (NO_TITLE, NO_STYLE, NO_INSTRUMENTS, NO_LYRICS, NO_COVERS):
        assert fallback in markdown

    rendered = render_report_preview(markdown, state)
    assert NO_LYRICS in rendered
    assert NO_COVERS in rendered

    chaptered = build_chaptered_markdown(state, catalog)
    for fallback in (NO_INTRODUCTION, NO_LYRICS, NO_ABOUT, "Untitled"):
        assert fallback in chaptered
    assert NO_LYRICS in render_report_preview(chaptered, state)


def test_unknown_instrument_gets_placeholder_description() -> None:
    state = _rain().model_copy(update={"instruments": ["Theremin"]})
    markdown = build_bundle_markdown(state, _catalog())
    assert "- **Theremin:** No description available." in markdown.split("\n")


def test_multiple_covers_are_listed_in_order() -> None:
    state = _rain().model_copy(update={"cover_image_urls": ["blob://1", "blob://2"]})
    markdown = build_bundle_markdown(state, _catalog())
    assert "![Cover Art 1](cover-1.png)\n\n![Cover Art 2](cover-2.png)" in markdown
    rendered = render_report_preview(markdown, state)
    assert re.findall(r'<img src="([^"]*)"', rendered) == ["blob://1", "blob://2"]


def test_normalize_indentation() -> None:
    assert normalize_indentation("  # Title\n\t- item\n") == "# Title\n- item"


def test_plain_lyrics_strips_directions() -> None:
    lyrics = "[Verse 1]\n[Miranda]\nFalling down (ooh)\n*thunder*\n\nInto the night"
    assert plain_lyrics(lyrics) == "Falling down\nInto the night"
    assert plain_lyrics(lyrics, separator=" / ") == "Falling down / Into the night"
    assert plain_lyrics("") == ""


def test_chaptered_report_without_translation() -> None:
    state = _rain().model_copy(update={"report_introduction": "A song about rain."})
    markdown = build_chaptered_markdown(state, _catalog(), "About us.")
    headings = [line for line in markdown.split("\n") if line.startswith("## Chapter")]
    assert headings == [
        "## Chapter 1: The Story Behind the Song",
        "## Chapter 2: Musical Blueprint",
        "## Chapter 3: The Libretto",
        "## Chapter 4: The Karaoke Session",
        "## Chapter 5: About the Artists",
    ]
    assert "A song about rain." in markdown
    assert '<div class="karaoke">Falling down</div>' in markdown
    assert markdown.rstrip().endswith("About us.")


def test_chaptered_report_with_translation() -> None:
    state = _rain().model_copy(
        update={
            "language": "Dutch",
            "language2": "English",
            "translated_lyrics": "Falling down, translated",
        }
    )
    markdown = build_chaptered_markdown(state, _catalog())
    assert "## Chapter 5: English Translation" in markdown
    assert "**Original Language(s):** Dutch, English" in markdown
    assert "## Chapter 6: About the Artists" in markdown

    rendered = render_report_preview(markdown, state)
    assert "<h2>Chapter 5: English Translation</h2>" in rendered
    assert '<div class="karaoke">Falling down</div>' in rendered


def test_karaoke_escapes_lyrics() -> None:
    state = _rain().model_copy(update={"lyrics": "Rock & <roll>\nagain"})
    markdown = build_chaptered_markdown(state, _catalog())
    assert '<div class="karaoke">Rock &amp; &lt;roll&gt;<br />again</div>' in markdown
    rendered = render_report_preview(markdown, state)
    assert '<div class="karaoke">Rock &amp; &lt;roll&gt;<br />again</div>' in rendered


def test_refresh_needs() -> None:
    state = _rain()
    needs = report_refresh_needs(state)
    assert needs.introduction is True
    assert needs.translation is False

    fresh = state.model_copy(
        update={"report_introduction": "intro", "report_lyrics_snapshot": state.lyrics}
    )
    assert report_refresh_needs(fresh).any is False
    assert report_refresh_needs(fresh, force=True).introduction is True

    edited = fresh.model_copy(update={"lyrics": "new words"})
    assert report_refresh_needs(edited).introduction is True

    dutch = fresh.model_copy(update={"language": "Dutch", "translated_lyrics": "done"})
    assert report_refresh_needs(dutch).translation is False
    assert report_refresh_needs(dutch, force=True).translation is True
    untranslated = dutch.model_copy(update={"translated_lyrics": ""})
    assert report_refresh_needs(untranslated).translation is True


def test_refresh_needs_without_title() -> None:
    assert report_refresh_needs(GenerationState()).any is False


def test_document_wraps_body() -> None:
    document = render_report_document("# Rain & Sun", "Rain & Sun")
    assert document.startswith("<!DOCTYPE html>")
    assert "<title>Song Report: Rain &amp; Sun</title>" in document
    assert "<h1>Rain &amp; Sun</h1>" in document


def test_report_filename() -> None:
    assert report_filename("Rain on Me!", ".zip") == "rain_on_me_.zip"
    assert report_filename("", ".md") == "song_report.md"
    assert report_filename("", ".zip", fallback="song_collection") == "song_collection.zip"
