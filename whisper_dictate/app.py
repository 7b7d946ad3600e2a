"""Main Whisper Dictate application."""

from __future__ import annotations

import asyncio
import logging
import signal
import time

from whisper_dictate.audio import (
    AudioRecorder,
    ToneCues,
    get_device_name,
    list_input_devices,
)
from whisper_dictate.config import Config, TranscriptionMode
from whisper_dictate.credentials import CredentialStore
from whisper_dictate.history import HistoryStore
from whisper_dictate.model_manager import LocalModelManager
from whisper_dictate.models import (
    Downloaded,
    DownloadFailed,
    Downloading,
    DownloadState,
    ModelVariant,
    NotDownloaded,
    short_status_text,
    status_text,
)
from whisper_dictate.output import TextInjector
from whisper_dictate.preferences import Preferences
from whisper_dictate.providers import CloudTranscriptionProvider, LocalTranscriptionProvider
from whisper_dictate.server import create_app, create_server
from whisper_dictate.session import DictationSession

logger = logging.getLogger(__name__)

PROGRESS_PRINT_STEPS = 10


class DictationApp:
    """
    Push-to-Talk Dictation Application.

    Records while a key is held, transcribes with the OpenAI API or a local
    Whisper model, and types the text into the application that had focus.
    """

    def __init__(self, config: Config | None = None) -> None:
        self._config = config or Config()
        cfg = self._config

        self._preferences = Preferences(cfg.preferences_path)
        self._credentials = CredentialStore()
        self._history = HistoryStore(cfg.history_path)
        self._manager = LocalModelManager(cfg.models_dir)

        self._cloud = CloudTranscriptionProvider(
            self._credentials, cfg.cloud, language=cfg.language
        )
        self._local = LocalTranscriptionProvider(
            self._manager, self._preferences, language=cfg.language
        )

        self._session = DictationSession(
            recorder=AudioRecorder(cfg.audio),
            injector=TextInjector(cfg.output_mode),
            history=self._history,
            preferences=self._preferences,
            credentials=self._credentials,
            providers={
                TranscriptionMode.CLOUD: self._cloud,
                TranscriptionMode.LOCAL: self._local,
            },
            cues=ToneCues(cfg.tones, cfg.audio.sample_rate),
        )

        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._listener = None
        self._server = None
        self._progress_steps: dict[ModelVariant, int] = {}

    def setup(self) -> None:
        """Probe local models and print the startup summary."""
        self._print_banner()
        self._print_devices()

        self._manager.probe_all_statuses()
        self._manager.add_listener(self._on_download_state)
        self._print_models()

        self._print_instructions()

    def _print_banner(self) -> None:
        print("=" * 60)
        print("🎙️ WHISPER DICTATE - Push-to-Talk Voice Dictation")
        print("=" * 60)

    def _print_devices(self) -> None:
        print("\n🎤 Available audio input devices:")
        print("-" * 50)
        for device in list_input_devices():
            print(f"  {device}")
        print("-" * 50)

        device_name = get_device_name(self._config.audio.device_id)
        if self._config.audio.device_id is not None:
            print(f"\n✅ Using input device [{self._config.audio.device_id}]: {device_name}")
        else:
            print(f"\n✅ Using DEFAULT input device: {device_name}")

        print(f"\n🔊 Output mode: {self._config.output_mode.value}")

    def _print_models(self) -> None:
        mode = self._preferences.mode
        print(f"\n🧠 Transcription mode: {mode.display_name}")
        if mode is TranscriptionMode.CLOUD:
            if self._credentials.has_api_key:
                print(f"   Model: {self._config.cloud.model}")
            else:
                print("   ⚠️  No API key configured")
            return

        selected = self._preferences.selected_model
        for variant, state in self._manager.all_download_states().items():
            marker = "▶" if variant == selected else " "
            print(f"   {marker} {variant} - {status_text(state)}")

    def _print_instructions(self) -> None:
        keybinds = self._config.keybinds
        print("\n" + "=" * 60)
        print("📌 INSTRUCTIONS:")
        print(f"   • Hold {keybinds.ptt_key} to talk. Release to transcribe.")
        print(f"   • Press {keybinds.quit_modifier}+{keybinds.quit_key} to quit. Ctrl+C also works.")
        if self._config.server.enabled:
            server = self._config.server
            print(f"   • Settings API: http://{server.host}:{server.port}/docs")
        print("=" * 60)
        print("\n🟢 Ready!\n")

    def _on_download_state(self, variant: ModelVariant, state: DownloadState) -> None:
        match state:
            case Downloading(fraction=fraction):
                step = int(fraction * PROGRESS_PRINT_STEPS)
                if self._progress_steps.get(variant) != step:
                    self._progress_steps[variant] = step
                    print(f"⬇️  {variant.label}: {short_status_text(state)}")
            case Downloaded():
                self._progress_steps.pop(variant, None)
                print(f"✅ Model {variant.label} ready")
            case DownloadFailed(message=message):
                self._progress_steps.pop(variant, None)
                print(f"❌ Model {variant.label}: {message}")
            case NotDownloaded():
                self._progress_steps.pop(variant, None)

    def run(self) -> None:
        """Run the application until the quit hotkey or a signal."""
        asyncio.run(self._main())

    async def _main(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()

        self.setup()
        self._install_signal_handlers()
        self._start_keyboard_listener()
        server_task = self._start_control_api()

        waiters: set[asyncio.Future] = {asyncio.ensure_future(self._stop_event.wait())}
        if server_task is not None:
            waiters.add(server_task)

        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            print("\n👋 Quitting...")
            await self._shutdown(waiters, server_task)

    def _install_signal_handlers(self) -> None:
        assert self._loop is not None and self._stop_event is not None
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, self._stop_event.set)
            except (NotImplementedError, RuntimeError):
                logger.debug("Signal handler for %s not supported", sig)

    def _start_keyboard_listener(self) -> None:
        from pynput import keyboard

        assert self._loop is not None and self._stop_event is not None
        loop = self._loop
        stop_event = self._stop_event
        keybinds = self._config.keybinds

        try:
            ptt_key = getattr(keyboard.Key, keybinds.ptt_key)
            quit_key = getattr(keyboard.Key, keybinds.quit_key)
            quit_modifier = getattr(keyboard.Key, keybinds.quit_modifier)
        except AttributeError as e:
            raise ValueError(f"Unknown key name in keybinds: {e}") from e

        cmd_down = False

        def on_press(key: keyboard.Key | keyboard.KeyCode | None) -> None:
            nonlocal cmd_down

            if key == quit_modifier:
                cmd_down = True
                return

            if key == ptt_key:
                loop.call_soon_threadsafe(self._session.press)

        def on_release(key: keyboard.Key | keyboard.KeyCode | None) -> bool | None:
            nonlocal cmd_down

            if key == quit_modifier:
                cmd_down = False
                return None

            if key == quit_key and cmd_down:
                loop.call_soon_threadsafe(stop_event.set)
                return False  # Stop listener

            if key == ptt_key:
                time.sleep(0.05)  # Small delay for cleaner cutoff
                loop.call_soon_threadsafe(self._session.release)

            return None

        self._listener = keyboard.Listener(on_press=on_press, on_release=on_release)
        self._listener.start()

    def _start_control_api(self) -> asyncio.Task | None:
        server_config = self._config.server
        if not server_config.enabled:
            return None

        app = create_app(
            manager=self._manager,
            preferences=self._preferences,
            credentials=self._credentials,
            history=self._history,
            cloud_provider=self._cloud,
            session=self._session,
        )
        self._server = create_server(app, server_config.host, server_config.port)
        logger.info("Control API on %s:%d", server_config.host, server_config.port)
        return asyncio.create_task(self._server.serve())

    async def _shutdown(
        self,
        waiters: set[asyncio.Future],
        server_task: asyncio.Task | None,
    ) -> None:
        logger.info("Shutting down...")

        if self._listener is not None:
            self._listener.stop()
            self._listener = None

        await self._session.shutdown()

        if self._server is not None:
            # uvicorn drains connections and returns once this is set
            self._server.should_exit = True
        for waiter in waiters:
            if not waiter.done() and waiter is not server_task:
                waiter.cancel()
        await asyncio.gather(*waiters, return_exceptions=True)

        self._manager.unload()
