"""Upgrade chain for persisted generation documents.

Older sessions stored a single cover image (``coverImageUrl`` /
``coverImagePrompt``) and had no notion of a selected cover. Each step below
takes the raw decoded map and returns an upgraded copy; steps only act when
the legacy shape is present, so running the chain on a current document is
a no-op.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Mapping, Sequence

from loguru import logger
from pydantic import ValidationError

from ..services.exceptions import StateDecodeError
from .models import GenerationState

RawState = Dict[str, Any]
Upgrade = Callable[[RawState], RawState]


def wrap_legacy_cover_url(raw: RawState) -> RawState:
    if raw.get("coverImageUrl") and raw.get("coverImageUrls") is None:
        upgraded = dict(raw)
        upgraded["coverImageUrls"] = [upgraded.pop("coverImageUrl")]
        return upgraded
    return raw


def wrap_legacy_cover_prompt(raw: RawState) -> RawState:
    if raw.get("coverImagePrompt") and raw.get("coverImagePrompts") is None:
        upgraded = dict(raw)
        upgraded["coverImagePrompts"] = [upgraded.pop("coverImagePrompt")]
        return upgraded
    return raw


def default_selected_cover(raw: RawState) -> RawState:
    urls = raw.get("coverImageUrls")
    if urls and "selectedCoverImageIndex" not in raw:
        upgraded = dict(raw)
        upgraded["selectedCoverImageIndex"] = len(urls) - 1
        return upgraded
    return raw


def clamp_selected_cover(raw: RawState) -> RawState:
    index = raw.get("selectedCoverImageIndex")
    if not isinstance(index, int) or isinstance(index, bool):
        return raw
    urls = raw.get("coverImageUrls") or []
    if 0 <= index < len(urls):
        return raw
    upgraded = dict(raw)
    upgraded["selectedCoverImageIndex"] = len(urls) - 1 if urls else None
    return upgraded


UPGRADES: Sequence[Upgrade] = (
    wrap_legacy_cover_url,
    wrap_legacy_cover_prompt,
    default_selected_cover,
    clamp_selected_cover,
)


def migrate(raw: Mapping[str, Any]) -> RawState:
    upgraded: RawState = dict(raw)
    for step in UPGRADES:
        upgraded = step(upgraded)
    return upgraded


def decode_state(payload: str) -> GenerationState:
    """Decode, migrate and validate a persisted document.

    Fields absent from the payload fall back to their defaults, and so do
    fields whose stored value no longer validates; the rest of the document
    is kept. A payload that is not a JSON object raises
    :class:`StateDecodeError`.
    """
    try:
        raw = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise StateDecodeError(f"persisted state is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise StateDecodeError(
            f"persisted state must be a JSON object, got {type(raw).__name__}"
        )
    upgraded = migrate(raw)
    try:
        return GenerationState.model_validate(upgraded)
    except ValidationError as exc:
        invalid = {error["loc"][0] for error in exc.errors() if error["loc"]}
        logger.warning("Discarding invalid persisted fields: {}", sorted(map(str, invalid)))
    kept = {key: value for key, value in upgraded.items() if key not in invalid}
    return GenerationState.model_validate(migrate(kept))
