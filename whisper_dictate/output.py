"""Delivery of transcribed text to the focused application."""

from __future__ import annotations

import logging
import subprocess
import sys
import time
from abc import ABC, abstractmethod

import pyperclip
from pynput.keyboard import Controller as KeyboardController

from whisper_dictate.config import OutputMode

logger = logging.getLogger(__name__)

OSASCRIPT_TIMEOUT_SECONDS = 2
ACTIVATION_DELAY_SECONDS = 0.1

FRONTMOST_APP_SCRIPT = (
    'tell application "System Events" to get bundle identifier '
    "of first application process whose frontmost is true"
)


class OutputHandler(ABC):
    """Abstract base class for output handlers."""

    @abstractmethod
    def output(self, text: str) -> None:
        """Output the transcribed text."""
        ...


class ClipboardOutput(OutputHandler):
    """Outputs text to the system clipboard."""

    def output(self, text: str) -> None:
        pyperclip.copy(text)


class TyperOutput(OutputHandler):
    """Types text directly into the focused window."""

    def __init__(self) -> None:
        self._controller = KeyboardController()

    def output(self, text: str) -> None:
        try:
            # Small delay to ensure the window is ready
            time.sleep(0.05)
            self._controller.type(text)
        except Exception as e:
            logger.error("Failed to type text: %s", e)
            raise


class CompositeOutput(OutputHandler):
    """Combines multiple output handlers."""

    def __init__(self, *handlers: OutputHandler) -> None:
        self._handlers = handlers

    def output(self, text: str) -> None:
        for handler in self._handlers:
            try:
                handler.output(text)
            except Exception as e:
                logger.error("Output handler %s failed: %s", type(handler).__name__, e)


def create_output_handler(mode: OutputMode) -> OutputHandler:
    clipboard = ClipboardOutput()

    if mode == OutputMode.CLIPBOARD:
        return clipboard

    # TYPE mode: type into window + clipboard backup
    return CompositeOutput(TyperOutput(), clipboard)


def _osascript(script: str) -> str | None:
    if sys.platform != "darwin":
        return None
    try:
        result = subprocess.run(
            ["osascript", "-e", script],
            capture_output=True,
            text=True,
            timeout=OSASCRIPT_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("osascript failed: %s", e)
        return None
    if result.returncode != 0:
        logger.debug("osascript error: %s", result.stderr.strip())
        return None
    return result.stdout.strip() or None


class TextInjector:
    """Remembers which application had focus and sends text back to it."""

    def __init__(self, mode: OutputMode) -> None:
        self._handler = create_output_handler(mode)
        self._target_app: str | None = None

    @property
    def target_app(self) -> str | None:
        return self._target_app

    def capture_target_app(self) -> None:
        """Best effort: remember the frontmost application."""
        self._target_app = _osascript(FRONTMOST_APP_SCRIPT)
        logger.debug("Target application: %s", self._target_app)

    def inject(self, text: str) -> None:
        target, self._target_app = self._target_app, None
        if target:
            _osascript(f'tell application id "{target}" to activate')
            time.sleep(ACTIVATION_DELAY_SECONDS)
        self._handler.output(text)
