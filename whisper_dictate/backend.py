"""Whisper checkpoints from the Hugging Face hub, run with mlx-whisper."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from tqdm import tqdm

if TYPE_CHECKING:
    from whisper_dictate.models import ModelVariant

logger = logging.getLogger(__name__)

# Either weight file marks a complete checkpoint directory
MARKER_FILES = ("weights.safetensors", "weights.npz")

ProgressCallback = Callable[[float], None]

DISK_POLL_INTERVAL_S = 0.5
# Bytes on disk only approximate the catalogue size; the final step comes from the hub
MAX_DISK_FRACTION = 0.99


def _progress_bar_class(on_progress: ProgressCallback) -> type[tqdm]:
    """Build a tqdm class that forwards the completed fraction."""

    class _ProgressBar(tqdm):
        def __init__(self, *args: Any, **kwargs: Any) -> None:
            kwargs["disable"] = False
            super().__init__(*args, **kwargs)

        def update(self, n: float | None = 1) -> bool | None:
            displayed = super().update(n)
            if self.total:
                on_progress(min(1.0, self.n / self.total))
            return displayed

    return _ProgressBar


def _directory_size(directory: Path) -> int:
    total = 0
    try:
        for path in directory.rglob("*"):
            try:
                if path.is_file():
                    total += path.stat().st_size
            except OSError:
                # Temp files come and go while the hub writes
                continue
    except OSError:
        return total
    return total


class _DiskProgressWatcher:
    """
    Reports download progress from the bytes written under a directory.

    snapshot_download drives its tqdm bar once per finished file, so a
    checkpoint made of one large weights file would sit at zero until the
    very end. Polling the directory fills that gap.
    """

    def __init__(
        self,
        directory: Path,
        expected_bytes: int,
        on_progress: ProgressCallback,
        interval: float = DISK_POLL_INTERVAL_S,
    ) -> None:
        self._directory = directory
        self._expected_bytes = expected_bytes
        self._on_progress = on_progress
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def poll(self) -> None:
        if self._expected_bytes <= 0:
            return
        fraction = _directory_size(self._directory) / self._expected_bytes
        if fraction > 0:
            self._on_progress(min(MAX_DISK_FRACTION, fraction))

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.poll()
            except Exception as e:
                logger.debug("Disk progress poll failed: %s", e)

    def __enter__(self) -> "_DiskProgressWatcher":
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="download-progress", daemon=True)
        self._thread.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None


class MlxWhisperModel:
    """A Whisper model held in memory by mlx-whisper."""

    def __init__(self, model_dir: Path, model: Any) -> None:
        self._model_dir = model_dir
        self._model = model

    @property
    def model_dir(self) -> Path:
        return self._model_dir

    def transcribe(self, audio_path: Path, language: str | None = None) -> list[str]:
        """Run inference and return the text of every segment."""
        import mlx_whisper

        result = mlx_whisper.transcribe(
            str(audio_path),
            path_or_hf_repo=str(self._model_dir),
            language=language,
        )
        segments = result.get("segments") or []
        if segments:
            return [str(segment.get("text", "")) for segment in segments]
        text = result.get("text", "")
        return [text] if isinstance(text, str) else []

    def release(self) -> None:
        # mlx-whisper keeps its own single-slot model cache
        from mlx_whisper.transcribe import ModelHolder

        if ModelHolder.model_path == str(self._model_dir):
            ModelHolder.model = None
            ModelHolder.model_path = None
        self._model = None


class MlxWhisperBackend:
    """Fetches and builds models. Every method blocks; call from a worker thread."""

    def download(
        self,
        variant: "ModelVariant",
        directory: Path,
        on_progress: ProgressCallback,
    ) -> None:
        from huggingface_hub import snapshot_download

        logger.info("Downloading %s into %s", variant.repo_id, directory)
        directory.mkdir(parents=True, exist_ok=True)
        with _DiskProgressWatcher(directory, variant.size_bytes, on_progress):
            snapshot_download(
                repo_id=variant.repo_id,
                local_dir=directory,
                tqdm_class=_progress_bar_class(on_progress),
            )

    def load(self, directory: Path) -> MlxWhisperModel:
        import mlx.core as mx
        from mlx_whisper.transcribe import ModelHolder

        logger.info("Loading Whisper model from %s", directory)
        model = ModelHolder.get_model(str(directory), mx.float16)
        return MlxWhisperModel(directory, model)
