"""Local control API for Whisper Dictate - mode, models and API key."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from whisper_dictate import __version__
from whisper_dictate.config import TranscriptionMode
from whisper_dictate.errors import (
    DictateError,
    ModelNotFoundError,
    ResourceContentionError,
    UnknownModelError,
)
from whisper_dictate.models import (
    Downloading,
    DownloadFailed,
    DownloadState,
    ModelVariant,
    get_variant,
    state_name,
    status_text,
)
from whisper_dictate.types import ControlConfig, HealthCheck, ModelStatus

if TYPE_CHECKING:
    from whisper_dictate.credentials import CredentialStore
    from whisper_dictate.history import HistoryStore
    from whisper_dictate.model_manager import LocalModelManager
    from whisper_dictate.preferences import Preferences
    from whisper_dictate.providers import CloudTranscriptionProvider
    from whisper_dictate.session import DictationSession

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
DEFAULT_HISTORY_LIMIT = 20


class ModeUpdate(BaseModel):
    mode: TranscriptionMode


class ModelUpdate(BaseModel):
    model: str


class APIKeyUpdate(BaseModel):
    api_key: str


def _error_status(error: DictateError) -> int:
    if isinstance(error, ResourceContentionError):
        return 409
    if isinstance(error, (ModelNotFoundError, UnknownModelError)):
        return 404
    return 400


def model_status(
    variant: ModelVariant,
    state: DownloadState,
    *,
    selected: bool,
    loaded: bool,
) -> ModelStatus:
    status: ModelStatus = {
        "id": variant.identifier,
        "label": variant.label,
        "size": variant.size_label,
        "description": variant.description,
        "icon": variant.icon,
        "state": state_name(state),
        "status": status_text(state),
        "selected": selected,
        "loaded": loaded,
    }
    if isinstance(state, Downloading):
        status["progress"] = state.fraction
        status["bytes_downloaded"] = state.bytes_downloaded
        status["bytes_total"] = state.bytes_total
    elif isinstance(state, DownloadFailed):
        status["error"] = state.message
    return status


def create_app(
    *,
    manager: "LocalModelManager",
    preferences: "Preferences",
    credentials: "CredentialStore",
    history: "HistoryStore",
    cloud_provider: "CloudTranscriptionProvider",
    session: "DictationSession | None" = None,
) -> FastAPI:
    app = FastAPI(
        title="Whisper Dictate Control API",
        description="Local settings surface for push-to-talk dictation",
        version=__version__,
    )
    background_tasks: set[asyncio.Task[None]] = set()

    def _on_download_done(task: asyncio.Task[None]) -> None:
        background_tasks.discard(task)
        if not task.cancelled() and (error := task.exception()) is not None:
            logger.warning("Background download failed: %s", error)

    def _config() -> ControlConfig:
        loaded = manager.loaded_variant
        return {
            "mode": preferences.mode.value,
            "local_model": preferences.selected_model.identifier,
            "has_api_key": credentials.has_api_key,
            "loaded_model": loaded.identifier if loaded else None,
        }

    @app.exception_handler(DictateError)
    async def dictate_error_handler(request: Request, exc: DictateError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=_error_status(exc))

    @app.get("/health")
    async def health_check():
        health: HealthCheck = {
            "status": "healthy",
            "session": session.state.value if session else None,
        }
        return JSONResponse(health)

    @app.get("/config")
    async def get_config():
        return JSONResponse(_config())

    @app.put("/mode")
    async def set_mode(update: ModeUpdate):
        preferences.mode = update.mode
        return JSONResponse(_config())

    @app.put("/model")
    async def set_model(update: ModelUpdate):
        preferences.selected_model = get_variant(update.model)
        return JSONResponse(_config())

    @app.get("/models")
    async def list_models():
        selected = preferences.selected_model
        loaded = manager.loaded_variant
        return JSONResponse([
            model_status(
                variant,
                state,
                selected=variant == selected,
                loaded=variant == loaded,
            )
            for variant, state in manager.all_download_states().items()
        ])

    @app.post("/models/{model_id}/download")
    async def download_model(model_id: str):
        variant = get_variant(model_id)
        if manager.loaded_variant == variant:
            return JSONResponse({"status": "loaded"})
        if manager.is_loading(variant):
            return JSONResponse(
                {"error": f"Download already in progress for model '{variant.label}'"},
                status_code=409,
            )
        if manager.in_use:
            return JSONResponse(
                {"error": f"Model '{manager.loaded_variant.label}' is busy transcribing"},
                status_code=409,
            )

        task = asyncio.create_task(manager.download_model(variant))
        background_tasks.add(task)
        task.add_done_callback(_on_download_done)
        logger.info("Download of %s requested", variant.identifier)
        return JSONResponse({"status": "downloading"}, status_code=202)

    @app.delete("/models/{model_id}")
    async def delete_model(model_id: str):
        variant = get_variant(model_id)
        # The active selection has no reload path once deleted
        if variant == preferences.selected_model:
            return JSONResponse(
                {"error": "Select another model before deleting the active one"},
                status_code=409,
            )
        await manager.delete_model(variant)
        return JSONResponse({"status": "deleted"})

    @app.put("/api-key")
    async def set_api_key(update: APIKeyUpdate):
        api_key = update.api_key.strip()
        if not api_key or not await cloud_provider.validate_api_key(api_key):
            return JSONResponse({"error": "Invalid API key"}, status_code=400)
        if not credentials.save_api_key(api_key):
            return JSONResponse({"error": "Could not store API key"}, status_code=500)
        return JSONResponse(_config())

    @app.delete("/api-key")
    async def clear_api_key():
        credentials.delete_api_key()
        return JSONResponse(_config())

    @app.get("/history")
    async def get_history(limit: int = DEFAULT_HISTORY_LIMIT):
        return JSONResponse(history.recent(limit))

    return app


def create_server(app: FastAPI, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> uvicorn.Server:
    """Build a uvicorn server to run inside the application's event loop."""
    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    return uvicorn.Server(config)
