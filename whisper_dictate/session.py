"""Push-to-talk session: record, transcribe, inject."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from whisper_dictate.config import TranscriptionMode
from whisper_dictate.errors import (
    EmptyRecordingError,
    MissingCredentialError,
    RecordingError,
)

if TYPE_CHECKING:
    from whisper_dictate.audio import AudioRecorder, ToneCues
    from whisper_dictate.credentials import CredentialStore
    from whisper_dictate.history import HistoryStore
    from whisper_dictate.output import TextInjector
    from whisper_dictate.preferences import Preferences
    from whisper_dictate.providers import TranscriptionProvider

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"


class DictationSession:
    """
    Drives one push-to-talk cycle at a time.

    Idle → Recording on press, Recording → Transcribing on release, back to
    Idle once the text is injected or the failure is reported. Triggers that
    do not match the current state are ignored, so the state doubles as the
    mutual exclusion between sessions.

    press() and release() must be called on the event loop thread.
    """

    def __init__(
        self,
        *,
        recorder: "AudioRecorder",
        injector: "TextInjector",
        history: "HistoryStore",
        preferences: "Preferences",
        credentials: "CredentialStore",
        providers: Mapping[TranscriptionMode, "TranscriptionProvider"],
        cues: "ToneCues | None" = None,
    ) -> None:
        self._recorder = recorder
        self._injector = injector
        self._history = history
        self._preferences = preferences
        self._credentials = credentials
        self._providers = dict(providers)
        self._cues = cues

        self._state = SessionState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._capture_task: asyncio.Task[None] | None = None
        self.last_error: str | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state is not SessionState.IDLE

    def press(self) -> bool:
        """Start recording. Returns False when the press was rejected."""
        if self._state is not SessionState.IDLE:
            logger.debug("Ignoring press while %s", self._state.value)
            return False

        mode = self._preferences.mode
        if mode is TranscriptionMode.CLOUD and not self._credentials.has_api_key:
            self._report_error(MissingCredentialError())
            return False

        # Capture first so the opening words are not lost
        try:
            self._recorder.start_recording()
        except Exception as e:
            self._report_error(e if isinstance(e, RecordingError) else RecordingError(str(e)))
            return False

        self._state = SessionState.RECORDING
        self.last_error = None
        self._play("start")
        print("🎙️ Recording...")

        # osascript can take a while; keep it off the event loop
        self._capture_task = asyncio.get_running_loop().create_task(self._capture_target())
        return True

    async def _capture_target(self) -> None:
        try:
            await asyncio.to_thread(self._injector.capture_target_app)
        except Exception as e:
            logger.warning("Could not capture target application: %s", e)

    def release(self) -> asyncio.Task[None] | None:
        """Stop recording and schedule transcription of the captured audio."""
        if self._state is not SessionState.RECORDING:
            return None

        try:
            audio_path = self._recorder.stop_recording()
        except Exception as e:
            self._state = SessionState.IDLE
            self._drop_capture()
            self._recorder.cleanup()
            self._report_error(RecordingError(str(e), action="save"))
            return None

        if audio_path is None:
            self._state = SessionState.IDLE
            self._drop_capture()
            self._report_error(EmptyRecordingError())
            return None

        self._state = SessionState.TRANSCRIBING
        self._play("stop")
        print("🛑 Stopped.")

        # Bound now: a later mode change does not redirect this session
        mode = self._preferences.mode
        provider = self._providers[mode]
        logger.info("Transcribing %s with %s provider", audio_path, mode.value)

        self._task = asyncio.get_running_loop().create_task(
            self._transcribe(provider, audio_path)
        )
        return self._task

    async def _transcribe(self, provider: "TranscriptionProvider", audio_path: Path) -> None:
        try:
            text = await provider.transcribe(audio_path)
            try:
                self._history.add(text)
            except OSError as e:
                logger.warning("Could not save history entry: %s", e)
            if self._capture_task is not None:
                await self._capture_task
            await asyncio.to_thread(self._injector.inject, text)
        except Exception as e:
            self._report_error(e)
        else:
            print(f"\n✅ Output: \"{text}\"")
        finally:
            self._state = SessionState.IDLE
            self._task = None
            self._capture_task = None
            self._recorder.cleanup()

    async def shutdown(self) -> None:
        """Abandon the current session, if any."""
        if self._state is SessionState.RECORDING:
            self._state = SessionState.IDLE
            self._drop_capture()
            try:
                self._recorder.stop_recording()
            except Exception as e:
                logger.warning("Error stopping recording: %s", e)
            self._recorder.cleanup()

        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _drop_capture(self) -> None:
        task, self._capture_task = self._capture_task, None
        if task is not None and not task.done():
            task.cancel()

    def _report_error(self, error: BaseException) -> None:
        self.last_error = str(error) or type(error).__name__
        logger.error("Dictation failed: %s", self.last_error)
        print(f"❌ {self.last_error}")
        self._play("error")

    def _play(self, cue: str) -> None:
        if self._cues is None:
            return
        try:
            getattr(self._cues, cue)()
        except Exception as e:
            logger.warning("Could not play %s cue: %s", cue, e)
