"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import os
import tempfile
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable, Generator
from unittest.mock import MagicMock

import numpy as np
import pytest

from whisper_dictate.model_manager import LocalModelManager
from whisper_dictate.models import ModelVariant
from whisper_dictate.preferences import Preferences

if TYPE_CHECKING:
    from numpy.typing import NDArray


class FakeModel:
    """Stands in for an mlx-whisper model held in memory."""

    def __init__(
        self,
        directory: Path,
        segments: list[str],
        gate: threading.Event | None = None,
    ) -> None:
        self.directory = directory
        self.segments = segments
        self.gate = gate
        self.released = False
        self.error: Exception | None = None
        self.calls: list[tuple[Path, str | None]] = []

    def transcribe(self, audio_path: Path, language: str | None = None) -> list[str]:
        self.calls.append((audio_path, language))
        if self.gate is not None:
            assert self.gate.wait(timeout=5), "transcribe gate never opened"
        if self.error is not None:
            raise self.error
        return list(self.segments)

    def release(self) -> None:
        self.released = True


class FakeBackend:
    """Download and load without network or GPU."""

    def __init__(self) -> None:
        self.progress = [0.25, 0.5, 0.4, 1.0]
        self.segments = [" Hello", " world. "]
        self.download_calls: list[ModelVariant] = []
        self.load_calls: list[Path] = []
        self.models: list[FakeModel] = []
        self.download_error: Exception | None = None
        self.gate: threading.Event | None = None
        self.transcribe_gate: threading.Event | None = None

    def download(self, variant: ModelVariant, directory: Path, on_progress: Callable[[float], None]) -> None:
        self.download_calls.append(variant)
        if self.gate is not None:
            assert self.gate.wait(timeout=5), "download gate never opened"
        for fraction in self.progress:
            on_progress(fraction)
        if self.download_error is not None:
            raise self.download_error
        install_model(directory)

    def load(self, directory: Path) -> FakeModel:
        self.load_calls.append(directory)
        model = FakeModel(directory, self.segments, self.transcribe_gate)
        self.models.append(model)
        return model


def install_model(directory: Path, marker: str = "weights.npz") -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / marker).write_bytes(b"weights")
    (directory / "config.json").write_text("{}")


@pytest.fixture
def models_dir(tmp_path: Path) -> Path:
    return tmp_path / "models"


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def manager(models_dir: Path, fake_backend: FakeBackend) -> LocalModelManager:
    return LocalModelManager(models_dir, backend=fake_backend)


@pytest.fixture
def install(manager: LocalModelManager) -> Callable[..., Path]:
    """Put a checkpoint for a variant on disk."""

    def _install(variant: ModelVariant, marker: str = "weights.npz") -> Path:
        directory = manager.model_dir(variant)
        install_model(directory, marker)
        return directory

    return _install


@pytest.fixture
def preferences(tmp_path: Path) -> Preferences:
    return Preferences(tmp_path / "preferences.json")


@pytest.fixture
def credentials() -> MagicMock:
    store = MagicMock()
    store.has_api_key = True
    store.get_api_key.return_value = "sk-test"
    return store


@pytest.fixture
def wait_until() -> Callable[[Callable[[], bool]], Awaitable[None]]:
    """Poll a condition from inside a running event loop."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.01)

    return _wait


@pytest.fixture
def sample_audio_16k() -> NDArray[np.int16]:
    """Generate 1 second of sample audio at 16kHz."""
    sample_rate = 16000
    duration = 1.0
    t = np.linspace(0, duration, int(sample_rate * duration), dtype=np.float32)
    # Generate a 440Hz sine wave
    audio = np.sin(2 * np.pi * 440 * t) * 0.5
    return (audio * 32767).astype(np.int16)


@pytest.fixture
def temp_wav_file(sample_audio_16k: NDArray[np.int16]) -> Generator[str, None, None]:
    """Create a temporary WAV file with sample audio."""
    from scipy.io.wavfile import write as wav_write

    fd, path = tempfile.mkstemp(suffix=".wav")
    os.close(fd)
    wav_write(path, 16000, sample_audio_16k)
    yield path
    # Cleanup
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Fixture to clean environment variables before/after tests."""
    env_vars = [
        "DICTATE_AUDIO_DEVICE",
        "DICTATE_OUTPUT_MODE",
        "DICTATE_INPUT_LANGUAGE",
        "DICTATE_VERBOSE",
        "DICTATE_DATA_DIR",
        "DICTATE_MODELS_DIR",
        "DICTATE_PTT_KEY",
        "DICTATE_CLOUD_MODEL",
        "DICTATE_CONTROL_API",
        "DICTATE_CONTROL_PORT",
    ]
    original_values = {var: os.environ.get(var) for var in env_vars}

    for var in env_vars:
        os.environ.pop(var, None)

    yield

    for var, value in original_values.items():
        if value is not None:
            os.environ[var] = value
        else:
            os.environ.pop(var, None)
