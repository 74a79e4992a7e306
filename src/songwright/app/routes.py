from __future__ import annotations

from typing import Awaitable, Callable, TypeVar, cast

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, Response

from ..services.bundle import write_bundle
from ..services.exceptions import (
    GenerationFailure,
    MissingCredentialError,
    PreconditionError,
)
from ..services.orchestrator import WizardOrchestrator
from ..services.report import report_filename
from .catalog import StyleCatalog
from .models import (
    ApiKeyValue,
    CoverSelection,
    GenerationState,
    InstrumentsValue,
    LyricsMode,
    ReportPreview,
    ReportRefresh,
    ReportVariant,
    StyleGroup,
    StyleSuggestion,
    StyleValue,
    TextValue,
)
from .settings import Settings
from .state import GenerationStore
from .storage import CredentialStore

router = APIRouter()

T = TypeVar("T")


def get_store(request: Request) -> GenerationStore:
    return cast(GenerationStore, request.app.state.store)


def get_orchestrator(request: Request) -> WizardOrchestrator:
    return cast(WizardOrchestrator, request.app.state.orchestrator)


def get_catalog(request: Request) -> StyleCatalog:
    return cast(StyleCatalog, request.app.state.catalog)


def get_credentials(request: Request) -> CredentialStore:
    return cast(CredentialStore, request.app.state.credentials)


def _to_http_error(exc: GenerationFailure) -> HTTPException:
    if isinstance(exc, MissingCredentialError):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, PreconditionError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


async def _run_step(request: Request, step: Callable[[], Awaitable[T]]) -> T:
    if get_store(request).is_loading:
        raise HTTPException(status_code=409, detail="A generation is already in progress.")
    try:
        return await step()
    except GenerationFailure as exc:
        raise _to_http_error(exc) from exc


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    settings = cast(Settings, request.app.state.settings)
    catalog = get_catalog(request)
    store = get_store(request)
    return {
        "status": "ok",
        "text_model_id": settings.text_model_id,
        "image_model_id": settings.image_model_id,
        "artifact_root": str(settings.artifact_root),
        "style_count": len(catalog.styles),
        "style_data_loading": catalog.is_loading,
        "has_api_key": bool(get_credentials(request).get()),
        "is_loading": store.is_loading,
        "thinking_message": store.state.thinking_message,
    }


@router.get("/state", response_model=GenerationState)
async def fetch_state(request: Request) -> GenerationState:
    return get_store(request).state


@router.put("/state/topic", response_model=GenerationState)
async def update_topic(payload: TextValue, request: Request) -> GenerationState:
    return get_store(request).set_topic(payload.value)


@router.put("/state/expanded-topic", response_model=GenerationState)
async def update_expanded_topic(payload: TextValue, request: Request) -> GenerationState:
    return get_store(request).set_expanded_topic(payload.value)


@router.put("/state/style", response_model=GenerationState)
async def update_style(payload: StyleValue, request: Request) -> GenerationState:
    try:
        return get_orchestrator(request).select_style(payload.value)
    except PreconditionError as exc:
        raise _to_http_error(exc) from exc


@router.put("/state/instruments", response_model=GenerationState)
async def update_instruments(payload: InstrumentsValue, request: Request) -> GenerationState:
    try:
        return get_orchestrator(request).select_instruments(payload.instruments)
    except PreconditionError as exc:
        raise _to_http_error(exc) from exc


@router.put("/state/title", response_model=GenerationState)
async def update_title(payload: TextValue, request: Request) -> GenerationState:
    return get_store(request).set_title(payload.value)


@router.put("/state/lyrics", response_model=GenerationState)
async def update_lyrics(payload: TextValue, request: Request) -> GenerationState:
    return get_store(request).set_lyrics(payload.value)


@router.put("/state/language", response_model=GenerationState)
async def update_language(payload: TextValue, request: Request) -> GenerationState:
    return get_store(request).set_language(payload.value)


@router.put("/state/language2", response_model=GenerationState)
async def update_language2(payload: TextValue, request: Request) -> GenerationState:
    return get_store(request).set_language2(payload.value)


@router.put("/state/cover-selection", response_model=GenerationState)
async def update_cover_selection(payload: CoverSelection, request: Request) -> GenerationState:
    store = get_store(request)
    if payload.index is not None and payload.index >= len(store.state.cover_image_urls):
        raise HTTPException(status_code=422, detail="cover index out of range")
    return store.set_selected_cover_image_index(payload.index)


@router.post("/state/reset", response_model=GenerationState)
async def reset_state(request: Request) -> GenerationState:
    return get_store(request).reset()


@router.get("/styles", response_model=list[StyleGroup])
async def list_styles(request: Request) -> list[StyleGroup]:
    return get_catalog(request).groups


@router.put("/settings/api-key")
async def update_api_key(payload: ApiKeyValue, request: Request) -> dict[str, bool]:
    get_credentials(request).set(payload.api_key)
    return {"has_api_key": True}


@router.post("/generate/topic-expansion", response_model=GenerationState)
async def expand_topic(request: Request) -> GenerationState:
    orchestrator = get_orchestrator(request)
    await _run_step(request, orchestrator.expand_topic)
    return orchestrator.state


@router.post("/generate/style-suggestion", response_model=StyleSuggestion)
async def suggest_style(request: Request) -> StyleSuggestion:
    orchestrator = get_orchestrator(request)
    suggested = await _run_step(request, orchestrator.suggest_style)
    return StyleSuggestion(style=suggested)


@router.post("/generate/lyrics", response_model=GenerationState)
async def generate_lyrics(request: Request, mode: LyricsMode = LyricsMode.ALL) -> GenerationState:
    orchestrator = get_orchestrator(request)
    return await _run_step(request, lambda: orchestrator.generate_lyrics(mode))


@router.post("/generate/cover", response_model=GenerationState)
async def generate_cover(request: Request) -> GenerationState:
    orchestrator = get_orchestrator(request)
    return await _run_step(request, orchestrator.generate_cover)


@router.get("/report", response_model=ReportPreview)
async def fetch_report(
    request: Request, variant: ReportVariant = ReportVariant.CHAPTERED
) -> ReportPreview:
    return await get_orchestrator(request).report(variant)


@router.post("/report/refresh", response_model=ReportRefresh)
async def refresh_report(request: Request, force: bool = False) -> ReportRefresh:
    orchestrator = get_orchestrator(request)
    return await _run_step(request, lambda: orchestrator.refresh_report(force=force))


@router.get("/report/download")
async def download_report(
    request: Request, variant: ReportVariant = ReportVariant.CHAPTERED
) -> Response:
    orchestrator = get_orchestrator(request)
    preview = await orchestrator.report(variant)
    filename = report_filename(orchestrator.state.title, ".md")
    return Response(
        content=preview.markdown,
        media_type="text/markdown; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/bundle")
async def download_bundle(request: Request) -> FileResponse:
    settings = cast(Settings, request.app.state.settings)
    orchestrator = get_orchestrator(request)
    try:
        artifact = await orchestrator.create_bundle()
    except GenerationFailure as exc:
        raise _to_http_error(exc) from exc
    path = write_bundle(artifact, settings.artifact_root)
    return FileResponse(path, media_type="application/zip", filename=artifact.filename)
