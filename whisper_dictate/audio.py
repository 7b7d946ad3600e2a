from __future__ import annotations

import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import sounddevice as sd
from scipy.io.wavfile import write as wav_write

from whisper_dictate.errors import RecordingError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from whisper_dictate.config import AudioConfig, ToneConfig

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 16_000
FADE_DURATION_SECONDS = 0.008
INT16_MAX = 32767.0
AUDIO_CLIP_MIN = -1.0
AUDIO_CLIP_MAX = 1.0
FIRST_CHANNEL_INDEX = 0


@dataclass
class AudioDevice:
    index: int
    name: str
    is_default: bool = False

    def __str__(self) -> str:
        marker = " (DEFAULT)" if self.is_default else ""
        return f"[{self.index}] {self.name}{marker}"


def list_input_devices() -> list[AudioDevice]:
    devices = sd.query_devices()
    default_input = sd.default.device[FIRST_CHANNEL_INDEX]

    input_devices = []
    for i, dev in enumerate(devices):
        if dev["max_input_channels"] > 0:  # type: ignore[index]
            input_devices.append(
                AudioDevice(
                    index=i,
                    name=dev["name"],  # type: ignore[index]
                    is_default=(i == default_input),
                )
            )
    return input_devices


def get_device_name(device_id: int | None) -> str:
    if device_id is not None:
        info = sd.query_devices(device_id)
    else:
        default_id = sd.default.device[FIRST_CHANNEL_INDEX]
        info = sd.query_devices(default_id)
    return info["name"]  # type: ignore[index,return-value]


def play_tone(
    config: "ToneConfig",
    frequency_hz: int,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> None:
    if not config.enabled:
        return

    n_samples = int(sample_rate * config.duration_s)
    t = np.arange(n_samples, dtype=np.float32) / sample_rate
    tone = np.sin(2.0 * np.pi * frequency_hz * t) * config.volume

    fade_samples = max(1, int(FADE_DURATION_SECONDS * sample_rate))
    if fade_samples * 2 < n_samples:
        window = np.ones(n_samples, dtype=np.float32)
        window[:fade_samples] = np.linspace(0, 1, fade_samples, dtype=np.float32)
        window[-fade_samples:] = np.linspace(1, 0, fade_samples, dtype=np.float32)
        tone *= window

    sd.play(tone.astype(np.float32), sample_rate, blocking=False)


class ToneCues:
    """Start, stop and error sounds."""

    def __init__(self, config: "ToneConfig", sample_rate: int = DEFAULT_SAMPLE_RATE) -> None:
        self._config = config
        self._sample_rate = sample_rate

    def start(self) -> None:
        play_tone(self._config, self._config.start_hz, self._sample_rate)

    def stop(self) -> None:
        play_tone(self._config, self._config.stop_hz, self._sample_rate)

    def error(self) -> None:
        play_tone(self._config, self._config.error_hz, self._sample_rate)


class AudioRecorder:
    """Records the microphone into a temporary WAV file per session."""

    def __init__(self, config: "AudioConfig") -> None:
        self._config = config
        self._stream: sd.InputStream | None = None
        self._frames: list["NDArray[np.float32]"] = []
        self._recording = False
        self._recording_started_at = 0.0
        self._last_path: Path | None = None
        self._lock = threading.Lock()

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._recording

    @property
    def recording_duration(self) -> float:
        if not self._recording:
            return 0.0
        return time.time() - self._recording_started_at

    def start_recording(self) -> None:
        with self._lock:
            if self._recording:
                return
            self._frames = []
            self._recording = True
            self._recording_started_at = time.time()

        try:
            self._stream = sd.InputStream(
                samplerate=self._config.sample_rate,
                channels=self._config.channels,
                dtype="float32",
                blocksize=self._config.block_size,
                device=self._config.device_id,
                callback=self._audio_callback,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._stream = None
            with self._lock:
                self._recording = False
            raise RecordingError(str(e)) from e

    def stop_recording(self) -> Path | None:
        """Stop capture and return the WAV file, or None if nothing was heard."""
        with self._lock:
            if not self._recording:
                return None
            self._recording = False
            duration = time.time() - self._recording_started_at
            frames, self._frames = self._frames, []

        self._stop_stream()
        logger.info("Recorded %.2fs of audio", duration)

        if not frames:
            return None

        audio = np.clip(np.concatenate(frames), AUDIO_CLIP_MIN, AUDIO_CLIP_MAX)
        if audio.size == 0:
            return None

        self._last_path = self._save_temp_wav((audio * INT16_MAX).astype(np.int16))
        return self._last_path

    def cleanup(self) -> None:
        """Remove the file produced by the last recording."""
        path, self._last_path = self._last_path, None
        if path is None:
            return
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Failed to remove temp file %s: %s", path, e)

    def _save_temp_wav(self, audio: "NDArray[np.int16]") -> Path:
        fd, path = tempfile.mkstemp(suffix=".wav", prefix="dictate_")
        os.close(fd)
        wav_write(path, self._config.sample_rate, audio)
        return Path(path)

    def _stop_stream(self) -> None:
        if self._stream:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.warning("Error stopping audio stream: %s", e)
            finally:
                self._stream = None

    def _audio_callback(
        self,
        indata: "NDArray[np.float32]",
        frames: int,
        time_info: dict,
        status: sd.CallbackFlags,
    ) -> None:
        if status:
            logger.warning("Audio callback status: %s", status)

        audio = indata[:, FIRST_CHANNEL_INDEX].astype(np.float32, copy=True)
        with self._lock:
            if self._recording:
                self._frames.append(audio)
