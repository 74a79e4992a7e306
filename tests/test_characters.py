from __future__ import annotations

from pathlib import Path

import pytest

from songwright.services.characters import (
    FALLBACK_DESCRIPTIONS,
    MISSING_DESCRIPTION,
    CharacterLibrary,
    parse_description,
)

PROFILE = """# Someone

### Body Details

- **Hair**: Light brown; shoulder-length
- **Eyes**: *Blue*

## Personality

Calm.
"""


def test_parse_description_flattens_section() -> None:
    assert parse_description(PROFILE) == "Hair: Light brown, shoulder-length Eyes: Blue"


def test_parse_description_without_marker() -> None:
    assert parse_description("# Nobody\n\nNo details here.") == MISSING_DESCRIPTION


@pytest.mark.asyncio
async def test_library_reads_bundled_profiles() -> None:
    library = CharacterLibrary(Path(__file__).resolve().parents[1] / "src" / "songwright" / "data")
    descriptions = await library.descriptions()
    assert set(descriptions) == {"miranda", "annelies"}
    assert "espresso" in descriptions["miranda"]
    assert "Personality" not in descriptions["annelies"]


@pytest.mark.asyncio
async def test_library_falls_back_when_files_missing(tmp_path: Path) -> None:
    library = CharacterLibrary(tmp_path)
    assert await library.descriptions() == FALLBACK_DESCRIPTIONS
