"""Configuration for the Whisper Dictate application."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class OutputMode(str, Enum):
    TYPE = "type"
    CLIPBOARD = "clipboard"


class TranscriptionMode(str, Enum):
    CLOUD = "cloud"
    LOCAL = "local"

    @property
    def display_name(self) -> str:
        if self is TranscriptionMode.CLOUD:
            return "Cloud (API)"
        return "Local"

    @property
    def description(self) -> str:
        if self is TranscriptionMode.CLOUD:
            return "Uses the OpenAI API (requires an API key and an internet connection)"
        return "On-device transcription with Whisper (works offline)"


DEFAULT_DATA_DIR = Path.home() / ".whisper-dictate"

DEFAULT_CLOUD_PROMPT = (
    "API, SDK, GitHub, TypeScript, JavaScript, React, Node.js, Python, Claude, "
    "GPT, LLM, MCP, STT, TTS, Whisper, OpenAI, Anthropic, Convex, Vercel, "
    "Next.js, SwiftUI, Xcode, iOS, macOS"
)


@dataclass
class AudioConfig:
    sample_rate: int = 16_000
    channels: int = 1
    block_ms: int = 30
    device_id: int | None = None

    @property
    def block_size(self) -> int:
        return int(self.sample_rate * (self.block_ms / 1000.0))


@dataclass
class ToneConfig:
    enabled: bool = True
    start_hz: int = 880
    stop_hz: int = 440
    error_hz: int = 220
    duration_s: float = 0.04
    volume: float = 0.15


@dataclass
class CloudConfig:
    url: str = "https://api.openai.com/v1/audio/transcriptions"
    models_url: str = "https://api.openai.com/v1/models"
    model: str = "gpt-4o-mini-transcribe"
    prompt: str = DEFAULT_CLOUD_PROMPT
    timeout_s: float = 60.0


@dataclass
class LocalConfig:
    models_dir: Path | None = None


@dataclass
class KeybindConfig:
    # pynput ``keyboard.Key`` attribute names
    ptt_key: str = "alt_r"
    quit_key: str = "esc"
    quit_modifier: str = "cmd"


@dataclass
class ServerConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 8765


@dataclass
class Config:
    audio: AudioConfig = field(default_factory=AudioConfig)
    tones: ToneConfig = field(default_factory=ToneConfig)
    cloud: CloudConfig = field(default_factory=CloudConfig)
    local: LocalConfig = field(default_factory=LocalConfig)
    keybinds: KeybindConfig = field(default_factory=KeybindConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    output_mode: OutputMode = OutputMode.TYPE
    language: str | None = None
    data_dir: Path = DEFAULT_DATA_DIR
    verbose: bool = False

    @property
    def models_dir(self) -> Path:
        return self.local.models_dir or self.data_dir / "models"

    @property
    def preferences_path(self) -> Path:
        return self.data_dir / "preferences.json"

    @property
    def history_path(self) -> Path:
        return self.data_dir / "history.jsonl"

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if device := os.environ.get("DICTATE_AUDIO_DEVICE"):
            config.audio.device_id = int(device)

        if mode := os.environ.get("DICTATE_OUTPUT_MODE"):
            try:
                config.output_mode = OutputMode(mode.lower())
            except ValueError:
                pass  # Keep default if invalid value

        if lang := os.environ.get("DICTATE_INPUT_LANGUAGE"):
            config.language = None if lang.lower() == "auto" else lang

        if verbose := os.environ.get("DICTATE_VERBOSE"):
            config.verbose = verbose.lower() in ("1", "true", "yes")

        if data_dir := os.environ.get("DICTATE_DATA_DIR"):
            config.data_dir = Path(data_dir).expanduser()

        if models_dir := os.environ.get("DICTATE_MODELS_DIR"):
            config.local.models_dir = Path(models_dir).expanduser()

        if ptt_key := os.environ.get("DICTATE_PTT_KEY"):
            config.keybinds.ptt_key = ptt_key.lower()

        if cloud_model := os.environ.get("DICTATE_CLOUD_MODEL"):
            config.cloud.model = cloud_model

        if control_api := os.environ.get("DICTATE_CONTROL_API"):
            config.server.enabled = control_api.lower() in ("1", "true", "yes")

        if port := os.environ.get("DICTATE_CONTROL_PORT"):
            config.server.port = int(port)

        return config
