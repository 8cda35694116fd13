"""
Voice Note Transcription

Sends a recorded clip to an audio-capable Gemini model and returns the
plain-text transcript, which then goes through text extraction.

DESIGN DECISION: Unlike extraction, transcription has NO fallback.
There is no deterministic way to recover speech, so failures are raised
as TranscriptionError and the user is asked to record again.
"""

from typing import Any, Optional

import structlog

from expense_tracker.config import GeminiSettings, get_settings
from expense_tracker.services.gemini import create_gemini_model


logger = structlog.get_logger(__name__)


class TranscriptionError(Exception):
    """Audio could not be transcribed."""
    pass


class AudioTranscriptionService:
    """Speech-to-text for short expense voice notes."""

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
        language: Optional[str] = None,
    ):
        """
        Args:
            model: Object with an async ``generate_content_async(contents)``.
                   Built from settings on first use when omitted.
            settings: Gemini settings used to build the model.
            language: Source language code (defaults to
                      ``TRANSCRIPTION_LANGUAGE``).
        """
        self._model = model
        self._settings = settings
        self._language = language or get_settings().app.transcription_language

    @property
    def language(self) -> str:
        return self._language

    def _get_model(self) -> Any:
        """Get or create the Gemini audio model."""
        if self._model is None:
            settings = self._settings or get_settings().gemini
            self._model = create_gemini_model(
                model_name=settings.transcription_model_name,
                settings=settings,
            )
        return self._model

    def _build_prompt(self) -> str:
        return (
            f"Transcribe this audio recording. The speaker uses language "
            f"'{self._language}'. Respond with ONLY the spoken words as plain "
            f"text: no timestamps, no speaker labels, no commentary."
        )

    async def transcribe(
        self,
        audio_bytes: bytes,
        mime_type: str = "audio/webm",
    ) -> str:
        """
        Transcribe an audio clip.

        NOTE: A clip with no recognized speech is an error here, not an
        empty transcript. Empty text can't feed text extraction, so the
        caller gets a TranscriptionError instead of ``""``.

        Returns:
            The transcript, trimmed of surrounding whitespace

        Raises:
            TranscriptionError: If the model call fails or recognizes nothing
        """
        try:
            response = await self._get_model().generate_content_async(
                [self._build_prompt(), {"mime_type": mime_type, "data": audio_bytes}]
            )
            transcript = (response.text or "").strip()
        except Exception as e:
            logger.error(
                "transcription_failed",
                error_type=type(e).__name__,
                error=str(e),
            )
            raise TranscriptionError(f"Failed to transcribe audio: {e}") from e

        if not transcript:
            logger.error("transcription_failed", error="empty transcript")
            raise TranscriptionError("No speech recognized in the recording")

        logger.info("transcription_completed", transcript_length=len(transcript))
        return transcript
