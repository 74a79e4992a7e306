"""
CLI entry point to run the song wizard headless, from topic to zip bundle.

Example:
    python -m songwright.generate --topic "rain over the canal" --style Jazz --covers 2
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import List, Optional

from .app.catalog import StyleCatalog
from .app.settings import Settings
from .app.state import GenerationStore
from .app.storage import CredentialStore, MemoryStorage
from .services.bundle import ImageFetcher, write_bundle
from .services.characters import CharacterLibrary
from .services.gemini import GeminiTextService
from .services.imagen import ImagenService
from .services.orchestrator import WizardOrchestrator
from .services.report import report_filename


def _parse_instruments(value: str) -> List[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Write a song with Gemini and Imagen.")
    parser.add_argument("--topic", required=True, help="What the song should be about.")
    parser.add_argument(
        "--style",
        default=None,
        help="Style key from the catalog (asks the model for a suggestion when omitted).",
    )
    parser.add_argument(
        "--instruments",
        type=_parse_instruments,
        default=None,
        help="Comma separated instrument names (defaults to the style's default set).",
    )
    parser.add_argument(
        "--covers",
        type=int,
        default=1,
        help="Number of cover images to generate.",
    )
    parser.add_argument(
        "--expand",
        action="store_true",
        help="Expand the topic with the text model before writing lyrics.",
    )
    parser.add_argument(
        "--api-key",
        default=None,
        help="API key override (defaults to SONGWRIGHT_API_KEY).",
    )
    parser.add_argument(
        "--artifact-dir",
        type=Path,
        default=None,
        help="Override artifact directory (defaults to settings).",
    )
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Override config directory (defaults to settings).",
    )
    return parser.parse_args()


async def _run(
    topic: str,
    *,
    style: Optional[str],
    instruments: Optional[List[str]],
    covers: int,
    expand: bool,
    api_key: Optional[str],
    artifact_dir: Optional[Path],
    config_dir: Optional[Path],
    text_service: Optional[GeminiTextService] = None,
    image_service: Optional[ImagenService] = None,
) -> None:
    settings_kwargs: dict[str, object] = {}
    if artifact_dir is not None:
        settings_kwargs["artifact_root"] = artifact_dir
    if config_dir is not None:
        settings_kwargs["config_dir"] = config_dir

    settings = Settings(**settings_kwargs)
    settings.ensure_directories()

    storage = MemoryStorage()
    credentials = CredentialStore(
        storage, settings.credential_storage_key, fallback=api_key or settings.api_key
    )
    catalog = StyleCatalog()
    await catalog.load(
        settings.style_catalog_source or "",
        timeout=settings.image_fetch_timeout_seconds,
    )
    store = GenerationStore(default_thinking_message=settings.default_thinking_message)
    orchestrator = WizardOrchestrator(
        settings,
        store,
        catalog,
        credentials,
        text_service or GeminiTextService(settings),
        image_service or ImagenService(settings),
        CharacterLibrary(settings.assets_dir),
        ImageFetcher(timeout=settings.image_fetch_timeout_seconds),
    )

    store.set_topic(topic)
    if expand:
        await orchestrator.expand_topic()
    if style is None:
        style = await orchestrator.suggest_style()
        if style is None:
            raise SystemExit("No style given and none could be suggested; pass --style.")
    else:
        orchestrator.select_style(style)

    if instruments is None:
        definition = catalog.get(style)
        instruments = (
            [item.name for item in definition.instruments if item.default] if definition else []
        )
    orchestrator.select_instruments(instruments)

    await orchestrator.generate_lyrics()
    for _ in range(max(1, covers)):
        await orchestrator.generate_cover()
    await orchestrator.refresh_report()

    preview = await orchestrator.report()
    state = orchestrator.state
    report_path = settings.artifact_root / report_filename(state.title, ".md")
    report_path.write_text(preview.markdown, encoding="utf-8")
    bundle_path = write_bundle(await orchestrator.create_bundle(), settings.artifact_root)

    print(f"title         : {state.title}")
    print(f"style         : {state.style}")
    print(f"instruments   : {', '.join(state.instruments) or '-'}")
    print(f"covers        : {len(state.cover_image_urls)}")
    print(f"report_path   : {report_path}")
    print(f"bundle_path   : {bundle_path}")


def main() -> None:
    args = _parse_args()
    asyncio.run(
        _run(
            args.topic,
            style=args.style,
            instruments=args.instruments,
            covers=args.covers,
            expand=args.expand,
            api_key=args.api_key,
            artifact_dir=args.artifact_dir,
            config_dir=args.config_dir,
        )
    )


if __name__ == "__main__":
    main()
