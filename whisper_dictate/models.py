"""Local Whisper model catalogue and per-model download states."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from whisper_dictate.errors import UnknownModelError

BYTES_PER_MB = 1_000_000


@dataclass(frozen=True)
class ModelVariant:
    identifier: str
    label: str
    file_name: str
    repo_id: str
    size_bytes: int
    size_label: str
    description: str
    icon: str

    def __str__(self) -> str:
        return f"{self.icon} {self.label} ({self.size_label})"


BASE = ModelVariant(
    identifier="base",
    label="Base",
    file_name="whisper-base-mlx",
    repo_id="mlx-community/whisper-base-mlx",
    size_bytes=145_000_000,
    size_label="~145 MB",
    description="Ultra fast, basic accuracy",
    icon="🐇",
)

SMALL = ModelVariant(
    identifier="small",
    label="Small",
    file_name="whisper-small-mlx",
    repo_id="mlx-community/whisper-small-mlx",
    size_bytes=484_000_000,
    size_label="~484 MB",
    description="Very fast, good accuracy",
    icon="🐰",
)

LARGE_V3_TURBO = ModelVariant(
    identifier="large-v3_turbo",
    label="Large V3 Turbo",
    file_name="whisper-large-v3-turbo",
    repo_id="mlx-community/whisper-large-v3-turbo",
    size_bytes=1_610_000_000,
    size_label="~1.6 GB",
    description="High accuracy, balanced",
    icon="🐢",
)

LARGE_V3 = ModelVariant(
    identifier="large-v3",
    label="Large V3",
    file_name="whisper-large-v3-mlx",
    repo_id="mlx-community/whisper-large-v3-mlx",
    size_bytes=3_080_000_000,
    size_label="~3.1 GB",
    description="Best accuracy",
    icon="🐌",
)

MODEL_VARIANTS: tuple[ModelVariant, ...] = (BASE, SMALL, LARGE_V3_TURBO, LARGE_V3)

DEFAULT_MODEL = LARGE_V3


def get_variant(identifier: str) -> ModelVariant:
    """Look up a variant by its persisted identifier."""
    for variant in MODEL_VARIANTS:
        if variant.identifier == identifier:
            return variant
    raise UnknownModelError(identifier)


@dataclass(frozen=True)
class NotDownloaded:
    pass


@dataclass(frozen=True)
class Downloading:
    fraction: float
    bytes_downloaded: int
    bytes_total: int


@dataclass(frozen=True)
class Downloaded:
    pass


@dataclass(frozen=True)
class DownloadFailed:
    message: str


DownloadState = Union[NotDownloaded, Downloading, Downloaded, DownloadFailed]

NOT_DOWNLOADED = NotDownloaded()
DOWNLOADED = Downloaded()


def is_ready(state: DownloadState) -> bool:
    return isinstance(state, Downloaded)


def format_bytes(num_bytes: int) -> str:
    mb = num_bytes / BYTES_PER_MB
    if mb >= 1000:
        return f"{mb / 1000:.1f} GB"
    return f"{mb:.1f} MB"


def status_text(state: DownloadState) -> str:
    match state:
        case NotDownloaded():
            return "Not downloaded"
        case Downloading(fraction=fraction, bytes_downloaded=done, bytes_total=total):
            return f"{int(fraction * 100)}% ({format_bytes(done)}/{format_bytes(total)})"
        case Downloaded():
            return "Ready"
        case DownloadFailed(message=message):
            return f"Error: {message}"
    raise TypeError(f"Unknown download state: {state!r}")


def short_status_text(state: DownloadState) -> str:
    match state:
        case Downloading(fraction=fraction):
            return f"Downloading: {int(fraction * 100)}%"
        case NotDownloaded() | Downloaded() | DownloadFailed():
            return status_text(state)
    raise TypeError(f"Unknown download state: {state!r}")


def state_name(state: DownloadState) -> str:
    """Stable machine-readable tag for a state."""
    match state:
        case NotDownloaded():
            return "not_downloaded"
        case Downloading():
            return "downloading"
        case Downloaded():
            return "downloaded"
        case DownloadFailed():
            return "error"
    raise TypeError(f"Unknown download state: {state!r}")
