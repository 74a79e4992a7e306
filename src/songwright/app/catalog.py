from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests
from loguru import logger
from pydantic import TypeAdapter

from .models import Instrument, MusicStyleDefinition, StyleGroup

_GROUPS_ADAPTER = TypeAdapter(List[StyleGroup])


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def _fetch_remote(source: str, timeout: float) -> Any:
    response = requests.get(source, timeout=timeout)
    response.raise_for_status()
    return response.json()


def _read_local(source: str) -> Any:
    return json.loads(Path(source).expanduser().read_text(encoding="utf-8"))


class StyleCatalog:
    """Style groups plus a flat lookup by style key."""

    def __init__(self, groups: Optional[Sequence[StyleGroup]] = None) -> None:
        self.groups: List[StyleGroup] = []
        self.styles: Dict[str, MusicStyleDefinition] = {}
        self.is_loading = True
        if groups is not None:
            self.replace(groups)

    def replace(self, groups: Sequence[StyleGroup]) -> None:
        flattened: Dict[str, MusicStyleDefinition] = {}
        for group in groups:
            for key, definition in group.styles.items():
                if key in flattened:
                    logger.warning(
                        "Style key {} defined more than once; group {} wins",
                        key,
                        group.name,
                    )
                flattened[key] = definition
        self.groups = list(groups)
        self.styles = flattened
        self.is_loading = False

    async def load(self, source: str, *, timeout: float = 30.0) -> None:
        """Load groups from a path or URL; failures leave the catalog empty."""
        try:
            if _is_url(source):
                payload = await asyncio.to_thread(_fetch_remote, source, timeout)
            else:
                payload = await asyncio.to_thread(_read_local, source)
            groups = _GROUPS_ADAPTER.validate_python(payload)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to load music styles from {}", source)
            self.groups = []
            self.styles = {}
            return
        finally:
            self.is_loading = False
        self.replace(groups)
        logger.info("Loaded {} styles in {} groups", len(self.styles), len(self.groups))

    def get(self, style_key: Optional[str]) -> Optional[MusicStyleDefinition]:
        if not style_key:
            return None
        return self.styles.get(style_key)

    def style_keys(self) -> List[str]:
        return list(self.styles.keys())

    def find_instrument(self, style_key: Optional[str], name: str) -> Optional[Instrument]:
        definition = self.get(style_key)
        if definition is None:
            return None
        for instrument in definition.instruments:
            if instrument.name == name:
                return instrument
        return None
