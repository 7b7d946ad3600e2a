"""
Local Whisper model lifecycle.

The manager owns the download state of every known model variant, the
single model held in memory and the set of variants with a load in flight.
All public methods must be called from the event loop thread; blocking work
(download, model construction, inference, file deletion) runs in worker
threads and the results are applied back on the loop.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any

from whisper_dictate.backend import MARKER_FILES, MlxWhisperBackend
from whisper_dictate.errors import (
    DownloadInProgressError,
    LocalTranscriptionError,
    ModelDeletionError,
    ModelInUseError,
    ModelLoadError,
    ModelNotFoundError,
    ModelNotLoadedError,
)
from whisper_dictate.models import (
    DOWNLOADED,
    MODEL_VARIANTS,
    NOT_DOWNLOADED,
    Downloading,
    DownloadFailed,
    DownloadState,
    ModelVariant,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[ModelVariant, DownloadState], None]


class _ProgressFeed:
    """Carries download fractions from a worker thread onto the event loop."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        deliver: Callable[[float], None],
    ) -> None:
        self._loop = loop
        self._deliver = deliver
        self._closed = False

    def push(self, fraction: float) -> None:
        if self._closed:
            return
        self._loop.call_soon_threadsafe(self._forward, fraction)

    def _forward(self, fraction: float) -> None:
        # Updates queued before close() are dropped here
        if not self._closed:
            self._deliver(fraction)

    def close(self) -> None:
        self._closed = True


@dataclass
class _LoadedModel:
    variant: ModelVariant
    model: Any


class LocalModelManager:
    """Downloads, loads, switches and deletes local Whisper models."""

    def __init__(
        self,
        models_dir: Path,
        backend: MlxWhisperBackend | None = None,
        variants: Sequence[ModelVariant] = MODEL_VARIANTS,
    ) -> None:
        self._models_dir = models_dir
        self._backend = backend or MlxWhisperBackend()
        self._variants = tuple(variants)

        self._states: dict[ModelVariant, DownloadState] = {
            variant: NOT_DOWNLOADED for variant in self._variants
        }
        self._loaded: _LoadedModel | None = None
        self._loading: set[ModelVariant] = set()
        self._inference_count = 0
        self._progress_feeds: dict[ModelVariant, _ProgressFeed] = {}
        self._listeners: list[StateListener] = []

    @property
    def variants(self) -> tuple[ModelVariant, ...]:
        return self._variants

    @property
    def models_dir(self) -> Path:
        return self._models_dir

    @property
    def loaded_variant(self) -> ModelVariant | None:
        return self._loaded.variant if self._loaded is not None else None

    def model_dir(self, variant: ModelVariant) -> Path:
        return self._models_dir / variant.file_name

    def is_downloaded(self, variant: ModelVariant) -> bool:
        directory = self.model_dir(variant)
        return any((directory / marker).exists() for marker in MARKER_FILES)

    def is_loading(self, variant: ModelVariant) -> bool:
        return variant in self._loading

    @property
    def in_use(self) -> bool:
        """True while an inference runs on the loaded model."""
        return self._inference_count > 0

    def add_listener(self, listener: StateListener) -> None:
        """Register a callback invoked on every download state change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    # State table

    def download_state(self, variant: ModelVariant) -> DownloadState:
        return self._states[variant]

    def all_download_states(self) -> dict[ModelVariant, DownloadState]:
        return dict(self._states)

    def probe_status(self, variant: ModelVariant) -> DownloadState:
        """Refresh the stored state of ``variant`` from what is on disk."""
        if variant in self._loading:
            # The in-flight operation owns this entry
            return self._states[variant]

        state = DOWNLOADED if self.is_downloaded(variant) else NOT_DOWNLOADED
        if self._states[variant] != state:
            self._set_state(variant, state)
        return state

    def probe_all_statuses(self) -> dict[ModelVariant, DownloadState]:
        for variant in self._variants:
            self.probe_status(variant)
        return self.all_download_states()

    # Loading

    async def ensure_loaded(self, variant: ModelVariant) -> None:
        """
        Make ``variant`` the model held in memory.

        Downloads the checkpoint first when it is missing. Any other loaded
        model is discarded before the load starts. A second call for a
        variant whose load is still running fails immediately with
        DownloadInProgressError.

        Raises:
            DownloadInProgressError: A load of ``variant`` is in flight.
            ModelInUseError: Another model is busy transcribing.
            ModelLoadError: Download or model construction failed.
        """
        loaded = self._loaded
        if loaded is not None and loaded.variant == variant:
            return

        if loaded is not None and self.in_use:
            raise ModelInUseError(loaded.variant)

        if variant in self._loading:
            raise DownloadInProgressError(variant)

        if loaded is not None:
            self._discard_loaded()

        with self._load_slot(variant):
            self._set_state(variant, Downloading(0.0, 0, variant.size_bytes))
            feed = self._open_progress_feed(variant)
            try:
                model = await self._fetch_and_build(variant, feed)
            except Exception as e:
                logger.error("Failed to load model %s: %s", variant.identifier, e)
                self._set_state(variant, DownloadFailed(str(e)))
                raise ModelLoadError(variant, str(e)) from e

            if self._loaded is not None:
                # Another variant finished loading while this one was in flight
                if self.in_use:
                    busy = self._loaded.variant
                    self._release_model(variant, model)
                    self._set_state(variant, DOWNLOADED)
                    raise ModelInUseError(busy)
                self._discard_loaded()
            self._loaded = _LoadedModel(variant, model)
            self._set_state(variant, DOWNLOADED)
            logger.info("Model %s loaded", variant.identifier)

    async def download_model(self, variant: ModelVariant) -> None:
        """Download ``variant`` if needed; downloading also loads it."""
        await self.ensure_loaded(variant)

    async def _fetch_and_build(self, variant: ModelVariant, feed: _ProgressFeed) -> Any:
        directory = self.model_dir(variant)

        if not self.is_downloaded(variant):
            await asyncio.to_thread(self._backend.download, variant, directory, feed.push)
            if not self.is_downloaded(variant):
                raise FileNotFoundError(f"No model weights found in {directory}")

        self._on_progress(variant, 1.0)
        return await asyncio.to_thread(self._backend.load, directory)

    @contextmanager
    def _load_slot(self, variant: ModelVariant) -> Iterator[None]:
        self._loading.add(variant)
        try:
            yield
        finally:
            self._loading.discard(variant)
            self._close_progress_feed(variant)
            if isinstance(self._states[variant], Downloading):
                # Left without reaching Downloaded or DownloadFailed
                self.probe_status(variant)

    def _open_progress_feed(self, variant: ModelVariant) -> _ProgressFeed:
        self._close_progress_feed(variant)
        feed = _ProgressFeed(
            asyncio.get_running_loop(),
            partial(self._on_progress, variant),
        )
        self._progress_feeds[variant] = feed
        return feed

    def _close_progress_feed(self, variant: ModelVariant) -> None:
        feed = self._progress_feeds.pop(variant, None)
        if feed is not None:
            feed.close()

    def _on_progress(self, variant: ModelVariant, fraction: float) -> None:
        state = self._states[variant]
        if not isinstance(state, Downloading):
            return

        fraction = max(state.fraction, min(1.0, max(0.0, fraction)))
        if fraction == state.fraction:
            return

        self._set_state(
            variant,
            Downloading(
                fraction=fraction,
                bytes_downloaded=int(state.bytes_total * fraction),
                bytes_total=state.bytes_total,
            ),
        )

    # Eviction

    async def delete_model(self, variant: ModelVariant) -> None:
        """
        Remove the on-disk checkpoint of ``variant``.

        A loaded model backed by this checkpoint is discarded first.

        Raises:
            ModelNotFoundError: Nothing is stored for ``variant``.
            DownloadInProgressError: ``variant`` is being loaded.
            ModelInUseError: ``variant`` is busy transcribing.
            ModelDeletionError: The directory could not be removed.
        """
        directory = self.model_dir(variant)
        if not directory.exists():
            raise ModelNotFoundError(variant)

        if self.in_use and self.loaded_variant == variant:
            raise ModelInUseError(variant)

        if variant in self._loading:
            raise DownloadInProgressError(variant)

        with self._load_slot(variant):
            if self._loaded is not None and self._loaded.variant == variant:
                self._discard_loaded()
            self._close_progress_feed(variant)

            logger.info("Deleting model %s at %s", variant.identifier, directory)
            error: OSError | None = None
            try:
                await asyncio.to_thread(shutil.rmtree, directory)
            except OSError as e:
                error = e
            else:
                self._set_state(variant, NOT_DOWNLOADED)

        if error is not None:
            # Partially removed checkpoints are reported from what is left
            self.probe_status(variant)
            raise ModelDeletionError(variant, str(error)) from error

    def unload(self) -> None:
        """Drop the model held in memory, if any."""
        if self._loaded is not None and self.in_use:
            raise ModelInUseError(self._loaded.variant)
        self._discard_loaded()

    def _discard_loaded(self) -> None:
        loaded, self._loaded = self._loaded, None
        if loaded is None:
            return

        logger.info("Unloading model %s", loaded.variant.identifier)
        self._release_model(loaded.variant, loaded.model)

    @staticmethod
    def _release_model(variant: ModelVariant, model: Any) -> None:
        try:
            model.release()
        except Exception as e:
            logger.warning("Error releasing model %s: %s", variant.identifier, e)

    # Inference

    async def transcribe(self, audio_path: Path, language: str | None = None) -> list[str]:
        """Run the loaded model on ``audio_path`` and return segment texts."""
        loaded = self._loaded
        if loaded is None:
            raise ModelNotLoadedError()

        # The handle must not be swapped or released until the worker returns
        self._inference_count += 1
        try:
            return await asyncio.to_thread(loaded.model.transcribe, audio_path, language)
        except Exception as e:
            raise LocalTranscriptionError(str(e)) from e
        finally:
            self._inference_count -= 1

    def _set_state(self, variant: ModelVariant, state: DownloadState) -> None:
        self._states[variant] = state
        for listener in list(self._listeners):
            try:
                listener(variant, state)
            except Exception:
                logger.exception("Download state listener failed")
