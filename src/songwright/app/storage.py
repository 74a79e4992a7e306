from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol

from loguru import logger

from .migrations import decode_state
from .models import GenerationState
from .state import Action, GenerationStore, Reset


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Dictionary-backed storage, useful for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage:
    """One file per key under ``root``; writes are atomic renames."""

    _UNSAFE = re.compile(r"[^A-Za-z0-9._-]")

    def __init__(self, root: Path) -> None:
        self._root = root

    def _path(self, key: str) -> Path:
        return self._root / self._UNSAFE.sub("_", key)

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._root, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class StatePersistence:
    """Mirrors the generation document into a storage slot."""

    def __init__(self, storage: KeyValueStorage, key: str) -> None:
        self._storage = storage
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> GenerationState:
        try:
            payload = self._storage.get_item(self._key)
            if payload is None:
                return GenerationState()
            state = decode_state(payload)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to load state from storage slot {}", self._key)
            return GenerationState()
        logger.debug("Restored generation state from slot {}", self._key)
        return state

    def save(self, state: GenerationState) -> None:
        try:
            self._storage.set_item(self._key, json.dumps(state.to_storage()))
        except Exception:  # noqa: BLE001
            logger.exception("Failed to save state to storage slot {}", self._key)

    def clear(self) -> None:
        try:
            self._storage.remove_item(self._key)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to clear storage slot {}", self._key)

    def attach(self, store: GenerationStore) -> Callable[[], None]:
        return store.subscribe(self._on_change)

    def _on_change(self, state: GenerationState, action: Action) -> None:
        if isinstance(action, Reset):
            self.clear()
        else:
            self.save(state)


class CredentialStore:
    """Plain string slot holding the user's API key."""

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str,
        fallback: Optional[str] = None,
    ) -> None:
        self._storage = storage
        self._key = key
        self._fallback = fallback

    def get(self) -> Optional[str]:
        try:
            stored = self._storage.get_item(self._key)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to read credential slot {}", self._key)
            stored = None
        return stored or self._fallback or None

    def set(self, api_key: str) -> None:
        self._storage.set_item(self._key, api_key)
