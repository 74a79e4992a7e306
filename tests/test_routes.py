from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Mapping, Optional, Sequence

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from songwright.app.main import create_app
from songwright.app.models import SongDraft
from songwright.app.settings import Settings
from songwright.app.storage import MemoryStorage


class StubTextService:
    async def expand_topic(self, api_key: Optional[str], topic: str) -> str:
        return f"expanded {topic}"

    async def suggest_style(
        self, api_key: Optional[str], topic: str, styles: Sequence[str]
    ) -> Optional[str]:
        return "Jazz" if "Jazz" in styles else None

    async def generate_title_and_lyrics(
        self,
        api_key: Optional[str],
        *,
        topic: str,
        style: str,
        instruments: Sequence[str],
    ) -> SongDraft:
        return SongDraft(title="Rain", lyrics="[Verse]\nFalling down")

    async def generate_image_prompt(
        self,
        api_key: Optional[str],
        *,
        topic: str,
        style: Optional[str],
        characters: Mapping[str, str],
    ) -> str:
        return "two musicians in the rain"

    async def generate_report_introduction(
        self, api_key: Optional[str], *, title: str, topic: str, lyrics: str
    ) -> str:
        return "A song about rain."

    async def translate_lyrics_to_english(self, api_key: Optional[str], lyrics: str) -> str:
        return "translated"


class StubImageService:
    async def generate_image(self, api_key: Optional[str], prompt: str) -> str:
        return "blob://cover"


class StubFetcher:
    async def fetch(self, url: str) -> bytes:
        return b"png"


def _app(tmp_path: Path, storage: Optional[MemoryStorage] = None) -> FastAPI:
    settings = Settings(
        config_dir=tmp_path / "config",
        artifact_root=tmp_path / "artifacts",
    )
    settings.ensure_directories()
    return create_app(
        settings,
        storage=storage or MemoryStorage(),
        text_service=StubTextService(),  # type: ignore[arg-type]
        image_service=StubImageService(),  # type: ignore[arg-type]
        fetcher=StubFetcher(),
    )


def test_create_app(tmp_path: Path) -> None:
    app = _app(tmp_path)
    assert app.title == "Songwright"


def test_health_endpoint(tmp_path: Path) -> None:
    with TestClient(_app(tmp_path)) as client:
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["style_data_loading"] is False
        assert body["style_count"] > 0
        assert body["has_api_key"] is False
        assert body["is_loading"] is False


def test_state_edits_are_persisted(tmp_path: Path) -> None:
    storage = MemoryStorage()
    with TestClient(_app(tmp_path, storage)) as client:
        assert client.put("/state/topic", json={"value": "rain"}).status_code == 200
        response = client.put("/state/style", json={"value": "Jazz"})
        assert response.status_code == 200
        response = client.put("/state/instruments", json={"instruments": ["Piano"]})
        assert response.json()["instruments"] == ["Piano"]

        response = client.put("/state/style", json={"value": "Blues"})
        assert response.json()["instruments"] == []

    with TestClient(_app(tmp_path, storage)) as client:
        state = client.get("/state").json()
        assert state["topic"] == "rain"
        assert state["style"] == "Blues"

        reset = client.post("/state/reset").json()
        assert reset["topic"] == ""
    assert storage.get_item("mn-ab-generation-state") is None


def test_unknown_style_and_instruments_are_rejected(tmp_path: Path) -> None:
    with TestClient(_app(tmp_path)) as client:
        response = client.put("/state/style", json={"value": "Polka"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown style: Polka"
        client.put("/state/style", json={"value": "Jazz"})
        response = client.put("/state/instruments", json={"instruments": ["Kazoo"]})
        assert response.status_code == 400
        assert client.get("/state").json()["instruments"] == []


def test_generation_requires_api_key(tmp_path: Path) -> None:
    with TestClient(_app(tmp_path)) as client:
        client.put("/state/topic", json={"value": "rain"})
        response = client.post("/generate/topic-expansion")
        assert response.status_code == 401


def test_generation_preconditions(tmp_path: Path) -> None:
    with TestClient(_app(tmp_path)) as client:
        client.put("/settings/api-key", json={"api_key": "key"})
        response = client.post("/generate/lyrics")
        assert response.status_code == 400
        assert response.json()["detail"] == "Please select a style first."


def test_full_flow_to_bundle(tmp_path: Path) -> None:
    with TestClient(_app(tmp_path)) as client:
        assert client.put("/settings/api-key", json={"api_key": "key"}).json() == {
            "has_api_key": True
        }
        client.put("/state/topic", json={"value": "rain"})
        assert client.post("/generate/topic-expansion").json()["expandedTopic"] == "expanded rain"
        assert client.post("/generate/style-suggestion").json() == {"style": "Jazz"}
        client.put("/state/instruments", json={"instruments": ["Piano"]})

        state = client.post("/generate/lyrics", params={"mode": "all"}).json()
        assert state["title"] == "Rain"
        state = client.post("/generate/cover").json()
        assert state["coverImageUrls"] == ["blob://cover"]
        assert state["selectedCoverImageIndex"] == 0

        refreshed = client.post("/report/refresh").json()
        assert refreshed == {"introduction_generated": True, "translation_generated": False}

        report = client.get("/report").json()
        assert "A song about rain." in report["markdown"]
        assert "<h1>Song Report: Rain</h1>" in report["html"]

        bundle_report = client.get("/report", params={"variant": "bundle"}).json()
        assert "![Cover Art 1](cover-1.png)" in bundle_report["markdown"]
        assert '<img src="blob://cover" alt="Cover Art 1" />' in bundle_report["html"]
        assert "cover-1.png" not in bundle_report["html"]
        assert client.get("/report", params={"variant": "poster"}).status_code == 422

        download = client.get("/report/download")
        assert download.status_code == 200
        assert 'filename="rain.md"' in download.headers["content-disposition"]

        bundle = client.get("/bundle")
        assert bundle.status_code == 200
        assert bundle.headers["content-type"] == "application/zip"
        with zipfile.ZipFile(io.BytesIO(bundle.content)) as archive:
            assert archive.read("cover-1.png") == b"png"
            assert archive.read("title.txt") == b"Rain"
    assert (tmp_path / "artifacts" / "rain.zip").exists()


def test_bundle_with_missing_assets(tmp_path: Path) -> None:
    with TestClient(_app(tmp_path)) as client:
        response = client.get("/bundle")
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Cannot download collection")


@pytest.mark.parametrize("index", [0, 3])
def test_cover_selection_out_of_range(tmp_path: Path, index: int) -> None:
    with TestClient(_app(tmp_path)) as client:
        response = client.put("/state/cover-selection", json={"index": index})
        assert response.status_code == 422


def test_styles_listing(tmp_path: Path) -> None:
    with TestClient(_app(tmp_path)) as client:
        groups = client.get("/styles").json()
        assert any("Jazz" in group["styles"] for group in groups)
