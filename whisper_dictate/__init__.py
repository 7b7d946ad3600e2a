"""
Whisper Dictate - Push-to-Talk Voice Dictation for macOS

Hold a key, speak, release: the recording is transcribed by the OpenAI API
or by a local Whisper model and typed into the focused application.
"""

__version__ = "1.1.0"

from whisper_dictate.config import Config, TranscriptionMode

__all__ = ["Config", "TranscriptionMode", "__version__"]
