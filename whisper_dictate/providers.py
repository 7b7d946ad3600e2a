"""Speech-to-text providers: OpenAI cloud API or a local Whisper model."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from whisper_dictate.errors import (
    AuthorizationError,
    CloudAPIError,
    CloudRequestError,
    EmptyTranscriptionError,
    InvalidResponseError,
    MissingCredentialError,
    TransportError,
)

if TYPE_CHECKING:
    from whisper_dictate.config import CloudConfig
    from whisper_dictate.credentials import CredentialStore
    from whisper_dictate.model_manager import LocalModelManager
    from whisper_dictate.preferences import Preferences

logger = logging.getLogger(__name__)

UNAUTHORIZED_STATUS_CODES = (401, 403)


class TranscriptionProvider(ABC):
    """Abstract base class for transcription backends."""

    name: str = ""

    @abstractmethod
    async def transcribe(self, audio_path: Path) -> str:
        """Turn a recorded audio file into text."""
        ...


class CloudTranscriptionProvider(TranscriptionProvider):
    """Sends each recording to the OpenAI transcription endpoint."""

    name = "cloud"

    def __init__(
        self,
        credentials: "CredentialStore",
        config: "CloudConfig",
        language: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials = credentials
        self._config = config
        self._language = language
        self._transport = transport

    async def transcribe(self, audio_path: Path) -> str:
        api_key = self._credentials.get_api_key()
        if not api_key:
            raise MissingCredentialError()

        try:
            audio = await asyncio.to_thread(audio_path.read_bytes)
        except OSError as e:
            raise TransportError(f"Could not read recording: {e}") from e

        data = {"model": self._config.model}
        if self._language:
            data["language"] = self._language
        if self._config.prompt:
            data["prompt"] = self._config.prompt

        content_type = mimetypes.guess_type(audio_path.name)[0] or "application/octet-stream"
        files = {"file": (audio_path.name, audio, content_type)}

        logger.info("Sending %d bytes to %s", len(audio), self._config.url)
        try:
            async with self._client() as client:
                response = await client.post(
                    self._config.url,
                    headers={"Authorization": f"Bearer {api_key}"},
                    data=data,
                    files=files,
                )
        except httpx.HTTPError as e:
            raise CloudRequestError(str(e) or type(e).__name__) from e

        if response.status_code == 200:
            return self._parse_text(response)
        raise self._api_error(response)

    async def validate_api_key(self, api_key: str) -> bool:
        """Check a key against the models endpoint without storing it."""
        try:
            async with self._client() as client:
                response = await client.get(
                    self._config.models_url,
                    headers={"Authorization": f"Bearer {api_key}"},
                )
        except httpx.HTTPError as e:
            logger.warning("API key validation failed: %s", e)
            return False
        return response.status_code == 200

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._config.timeout_s, transport=self._transport)

    @staticmethod
    def _parse_text(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidResponseError("body is not JSON") from e

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise InvalidResponseError("missing 'text' field")
        return text

    @staticmethod
    def _api_error(response: httpx.Response) -> CloudAPIError:
        message = None
        try:
            message = response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            pass

        logger.warning("Transcription request failed with HTTP %d", response.status_code)
        if response.status_code in UNAUTHORIZED_STATUS_CODES:
            return AuthorizationError(response.status_code, message)
        return CloudAPIError(response.status_code, message)


class LocalTranscriptionProvider(TranscriptionProvider):
    """Transcribes on-device with the model selected in preferences."""

    name = "local"

    def __init__(
        self,
        manager: "LocalModelManager",
        preferences: "Preferences",
        language: str | None = None,
    ) -> None:
        self._manager = manager
        self._preferences = preferences
        self._language = language

    async def transcribe(self, audio_path: Path) -> str:
        variant = self._preferences.selected_model
        await self._manager.ensure_loaded(variant)

        segments = await self._manager.transcribe(audio_path, self._language)
        text = " ".join(part for part in (s.strip() for s in segments) if part)
        if not text:
            raise EmptyTranscriptionError()
        return text
