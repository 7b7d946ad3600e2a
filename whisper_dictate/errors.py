"""Error types raised by the transcription providers and the model manager."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from whisper_dictate.models import ModelVariant


class DictateError(Exception):
    """Base class for every recoverable dictation failure."""


# Configuration

class ConfigurationError(DictateError):
    pass


class MissingCredentialError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("OpenAI API key is not configured")


class UnknownModelError(ConfigurationError):
    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Unknown local model '{identifier}'")


class ModelNotLoadedError(ConfigurationError):
    def __init__(self) -> None:
        super().__init__("Local Whisper model is not initialized")


# Resource contention

class ResourceContentionError(DictateError):
    pass


class DownloadInProgressError(ResourceContentionError):
    def __init__(self, variant: "ModelVariant") -> None:
        self.variant = variant
        super().__init__(f"Download already in progress for model '{variant.label}'")


class ModelInUseError(ResourceContentionError):
    def __init__(self, variant: "ModelVariant") -> None:
        self.variant = variant
        super().__init__(f"Model '{variant.label}' is busy transcribing")


# I/O and transport

class TransportError(DictateError):
    pass


class RecordingError(TransportError):
    def __init__(self, message: str, action: str = "start") -> None:
        super().__init__(f"Could not {action} recording: {message}")


class CloudRequestError(TransportError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Network error: {message}")


class CloudAPIError(TransportError):
    """Non-2xx answer from the transcription endpoint."""

    def __init__(self, status_code: int, message: str | None = None) -> None:
        self.status_code = status_code
        self.message = message
        if message:
            super().__init__(f"API error ({status_code}): {message}")
        else:
            super().__init__(f"HTTP error: {status_code}")


class AuthorizationError(CloudAPIError):
    pass


class InvalidResponseError(TransportError):
    def __init__(self, detail: str = "") -> None:
        message = "Invalid response from server"
        super().__init__(f"{message}: {detail}" if detail else message)


class ModelLoadError(TransportError):
    def __init__(self, variant: "ModelVariant", message: str) -> None:
        self.variant = variant
        super().__init__(f"Failed to initialize model '{variant.label}': {message}")


class ModelDeletionError(TransportError):
    def __init__(self, variant: "ModelVariant", message: str) -> None:
        self.variant = variant
        super().__init__(f"Failed to delete model '{variant.label}': {message}")


class LocalTranscriptionError(TransportError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Local transcription error: {message}")


# Content

class ContentError(DictateError):
    pass


class EmptyRecordingError(ContentError):
    def __init__(self) -> None:
        super().__init__("No recording found")


class EmptyTranscriptionError(ContentError):
    def __init__(self) -> None:
        super().__init__("No text was transcribed")


class ModelNotFoundError(ContentError):
    def __init__(self, variant: "ModelVariant") -> None:
        self.variant = variant
        super().__init__(f"Model '{variant.label}' not found on disk")
