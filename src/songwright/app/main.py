from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from loguru import logger

from ..services.bundle import CoverFetcher, ImageFetcher
from ..services.characters import CharacterLibrary
from ..services.gemini import GeminiTextService
from ..services.imagen import ImagenService
from ..services.orchestrator import WizardOrchestrator
from .catalog import StyleCatalog
from .routes import router
from .settings import Settings, get_settings
from .state import GenerationStore
from .storage import CredentialStore, FileStorage, KeyValueStorage, StatePersistence


def create_app(
    settings: Optional[Settings] = None,
    *,
    storage: Optional[KeyValueStorage] = None,
    text_service: Optional[GeminiTextService] = None,
    image_service: Optional[ImagenService] = None,
    fetcher: Optional[CoverFetcher] = None,
) -> FastAPI:
    """Create and configure FastAPI instance."""
    settings = settings or get_settings()
    storage = storage or FileStorage(settings.storage_dir)
    persistence = StatePersistence(storage, settings.state_storage_key)
    store = GenerationStore(
        persistence.load(),
        default_thinking_message=settings.default_thinking_message,
    )
    persistence.attach(store)
    credentials = CredentialStore(
        storage, settings.credential_storage_key, fallback=settings.api_key
    )
    catalog = StyleCatalog()
    orchestrator = WizardOrchestrator(
        settings,
        store,
        catalog,
        credentials,
        text_service or GeminiTextService(settings),
        image_service or ImagenService(settings),
        CharacterLibrary(settings.assets_dir),
        fetcher or ImageFetcher(timeout=settings.image_fetch_timeout_seconds),
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        source = settings.style_catalog_source or ""
        await catalog.load(source, timeout=settings.image_fetch_timeout_seconds)
        logger.info(
            "Songwright ready: {} styles, api key {}",
            len(catalog.styles),
            "present" if credentials.get() else "missing",
        )
        yield

    app = FastAPI(title="Songwright", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.persistence = persistence
    app.state.credentials = credentials
    app.state.catalog = catalog
    app.state.orchestrator = orchestrator
    app.include_router(router)
    return app


app = create_app()
