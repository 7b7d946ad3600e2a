#!/usr/bin/env python3
"""
Whisper Dictate - Push-to-Talk Voice Dictation

Hold a key to record, release it to transcribe with the OpenAI API or a
local Whisper model. The text is typed into the application that had focus.

Usage:
    python ptt_dictate.py

Environment Variables:
    DICTATE_AUDIO_DEVICE    Audio input device index
    DICTATE_OUTPUT_MODE     Output mode: 'type' or 'clipboard'
    DICTATE_INPUT_LANGUAGE  Whisper language code (e.g., 'en', 'fr', or 'auto')
    DICTATE_VERBOSE         Enable verbose logging: '1' or 'true'
    DICTATE_DATA_DIR        Preferences, history and models (default ~/.whisper-dictate)
    DICTATE_MODELS_DIR      Local model storage (default <data dir>/models)
    DICTATE_PTT_KEY         pynput key name for push-to-talk (default 'alt_r')
    DICTATE_CLOUD_MODEL     OpenAI transcription model
    DICTATE_CONTROL_API     Serve the local settings API: '1' or 'true'
    DICTATE_CONTROL_PORT    Port of the settings API (default 8765)
"""

from whisper_dictate.__main__ import main

if __name__ == "__main__":
    raise SystemExit(main())
