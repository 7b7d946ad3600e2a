"""Type definitions for the Whisper Dictate application."""

from __future__ import annotations

from typing import Literal, TypedDict

DownloadStateName = Literal["not_downloaded", "downloading", "downloaded", "error"]


class HistoryEntry(TypedDict):
    """One transcription stored in the history file."""

    timestamp: str
    text: str


class ModelStatus(TypedDict, total=False):
    """Local model entry returned by ``GET /models``."""

    id: str
    label: str
    size: str
    description: str
    icon: str
    state: DownloadStateName
    status: str
    progress: float
    bytes_downloaded: int
    bytes_total: int
    error: str
    selected: bool
    loaded: bool


class ControlConfig(TypedDict):
    """Configuration returned by ``GET /config``."""

    mode: Literal["cloud", "local"]
    local_model: str
    has_api_key: bool
    loaded_model: str | None


class HealthCheck(TypedDict):
    """Health check response."""

    status: Literal["healthy", "unhealthy"]
    session: Literal["idle", "recording", "transcribing"] | None
