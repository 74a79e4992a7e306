from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_config_dir() -> Path:
    return Path.home() / ".config" / "songwright"


def _default_artifact_root() -> Path:
    return Path.home() / "Music" / "Songwright"


def _default_assets_dir() -> Path:
    return Path(__file__).resolve().parents[1] / "data"


class Settings(BaseSettings):
    """Runtime configuration for the Songwright service."""

    model_config = SettingsConfigDict(
        env_prefix="SONGWRIGHT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    config_dir: Path = Field(default_factory=_default_config_dir)
    artifact_root: Path = Field(default_factory=_default_artifact_root)
    assets_dir: Path = Field(default_factory=_default_assets_dir)
    style_catalog_source: Optional[str] = Field(
        default=None,
        description="Path or http(s) URL of the style catalog (defaults to the bundled copy).",
    )
    state_storage_key: str = Field(
        default="mn-ab-generation-state",
        min_length=1,
        max_length=128,
    )
    credential_storage_key: str = Field(default="userApiKey", min_length=1, max_length=128)
    api_key: Optional[str] = Field(
        default=None,
        description="API key used when none has been stored through the settings endpoint.",
    )
    text_model_id: str = Field(default="gemini-2.5-flash", max_length=128)
    image_model_id: str = Field(default="imagen-3.0-generate-002", max_length=128)
    image_aspect_ratio: str = Field(default="3:4", max_length=8)
    image_fetch_timeout_seconds: float = Field(default=30.0, gt=0.0, le=600.0)
    default_thinking_message: str = Field(default="AI is thinking...", max_length=256)

    @model_validator(mode="after")
    def _resolve_catalog_source(self) -> "Settings":
        if not self.style_catalog_source:
            self.style_catalog_source = str(self.assets_dir / "music-styles.json")
        return self

    @property
    def storage_dir(self) -> Path:
        return self.config_dir / "storage"

    def ensure_directories(self) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.artifact_root.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.ensure_directories()
    return settings
