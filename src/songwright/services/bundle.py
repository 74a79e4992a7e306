"""Zip bundle containing the finished song's text, report and covers."""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Protocol
from urllib.parse import unquote, urlparse

import requests
from loguru import logger

from ..app.catalog import StyleCatalog
from ..app.models import GenerationState
from .exceptions import BundleError, MissingAssetsError
from .markdown import cover_placeholder
from .report import build_bundle_markdown, render_report_document, report_filename


class CoverFetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...


class ImageFetcher:
    """Resolves cover urls (data, http(s) or local files) to raw bytes."""

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout

    async def fetch(self, url: str) -> bytes:
        if url.startswith("data:"):
            return self._decode_data_url(url)
        parsed = urlparse(url)
        if parsed.scheme in ("http", "https"):
            return await asyncio.to_thread(self._download, url)
        path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(url)
        return await asyncio.to_thread(path.read_bytes)

    def _download(self, url: str) -> bytes:
        response = requests.get(url, timeout=self._timeout)
        response.raise_for_status()
        return response.content

    @staticmethod
    def _decode_data_url(url: str) -> bytes:
        header, _, payload = url.partition(",")
        if not header.endswith(";base64"):
            return unquote(payload).encode("utf-8")
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("cover data url is not valid base64") from exc


@dataclass(frozen=True)
class BundleArtifact:
    filename: str
    payload: bytes


def check_bundle_ready(state: GenerationState) -> None:
    missing: List[str] = []
    if not state.title:
        missing.append("title")
    if not state.lyrics:
        missing.append("lyrics")
    if not state.cover_image_urls:
        missing.append("cover image")
    elif state.selected_cover_image_url is None:
        missing.append("selected cover image")
    if not state.style:
        missing.append("style")
    if not state.instruments:
        missing.append("instruments")
    if missing:
        raise MissingAssetsError(missing)


def style_and_instruments(state: GenerationState) -> str:
    return ", ".join(part for part in [state.style, *state.instruments] if part)


async def build_bundle(
    state: GenerationState,
    catalog: StyleCatalog,
    fetcher: CoverFetcher,
) -> BundleArtifact:
    """Assemble the zip bundle; any failed cover fetch aborts the whole bundle."""
    check_bundle_ready(state)

    markdown = build_bundle_markdown(state, catalog)
    document = render_report_document(markdown, state.title)

    try:
        covers = await asyncio.gather(*(fetcher.fetch(url) for url in state.cover_image_urls))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error fetching cover images for bundle")
        raise BundleError(
            "An error occurred while creating the ZIP file. Please try again."
        ) from exc

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("title.txt", state.title)
        archive.writestr("lyrics.txt", state.lyrics)
        archive.writestr("style_and_instruments.txt", style_and_instruments(state))
        archive.writestr("report.md", markdown)
        archive.writestr("report.html", document)
        for index, image in enumerate(covers):
            archive.writestr(cover_placeholder(index), image)

    filename = report_filename(state.title, ".zip", fallback="song_collection")
    logger.info("Built bundle {} with {} cover(s)", filename, len(covers))
    return BundleArtifact(filename=filename, payload=buffer.getvalue())


def write_bundle(artifact: BundleArtifact, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / artifact.filename
    path.write_bytes(artifact.payload)
    return path
