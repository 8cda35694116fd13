"""Transcription services package."""

from expense_tracker.services.transcription.gemini_transcriber import (
    AudioTranscriptionService,
    TranscriptionError,
)

__all__ = [
    "AudioTranscriptionService",
    "TranscriptionError",
]
