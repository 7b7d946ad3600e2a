"""User preferences persisted between launches."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from whisper_dictate.config import TranscriptionMode
from whisper_dictate.errors import UnknownModelError
from whisper_dictate.models import DEFAULT_MODEL, ModelVariant, get_variant

logger = logging.getLogger(__name__)

MODE_KEY = "transcription_mode"
LOCAL_MODEL_KEY = "local_model"

# Cloud stays the default so installs that predate local mode keep working
DEFAULT_MODE = TranscriptionMode.CLOUD


class Preferences:
    """
    Small JSON key-value store.

    Values are read once at construction and written back on every change.
    Unknown or corrupt values fall back to the defaults.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._values: dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def mode(self) -> TranscriptionMode:
        raw = self._values.get(MODE_KEY)
        try:
            return TranscriptionMode(raw)
        except ValueError:
            return DEFAULT_MODE

    @mode.setter
    def mode(self, mode: TranscriptionMode) -> None:
        self._values[MODE_KEY] = TranscriptionMode(mode).value
        self._save()
        logger.info("Transcription mode set to %s", mode.value)

    @property
    def selected_model(self) -> ModelVariant:
        raw = self._values.get(LOCAL_MODEL_KEY)
        if not isinstance(raw, str):
            return DEFAULT_MODEL
        try:
            return get_variant(raw)
        except UnknownModelError:
            logger.warning("Ignoring unknown stored model '%s'", raw)
            return DEFAULT_MODEL

    @selected_model.setter
    def selected_model(self, variant: ModelVariant) -> None:
        self._values[LOCAL_MODEL_KEY] = variant.identifier
        self._save()
        logger.info("Local model set to %s", variant.identifier)

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Could not read preferences %s: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed preferences file %s", self._path)
            return {}
        return data

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent, prefix=".preferences_", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._values, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        except OSError:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise
