"""
Gemini model construction.

Every model-backed service (text extraction, receipt extraction,
transcription) builds its ``GenerativeModel`` here so the API key,
temperature and token limits are configured in one place.

DESIGN DECISION: Models are built lazily, on the first call that needs
them. The app can start, store expenses and serve summaries before a
Gemini key is configured; only capture paths need it.
"""

from typing import Optional

import google.generativeai as genai

from expense_tracker.config import GeminiSettings, get_settings


def create_gemini_model(
    model_name: Optional[str] = None,
    settings: Optional[GeminiSettings] = None,
    json_output: bool = False,
    max_output_tokens: Optional[int] = None,
) -> genai.GenerativeModel:
    """
    Configure the Gemini client and return a model.

    Args:
        model_name: Model to use (defaults to the configured text model)
        settings: Gemini settings (defaults to the environment)
        json_output: Ask the model to answer with ``application/json``
        max_output_tokens: Override for the configured token limit

    Raises:
        pydantic.ValidationError: If ``GEMINI_API_KEY`` is not set
    """
    settings = settings or get_settings().gemini
    genai.configure(api_key=settings.api_key)

    generation_config = {
        "temperature": settings.temperature,  # Low temperature for consistency
        "max_output_tokens": max_output_tokens or settings.max_tokens,
    }
    if json_output:
        generation_config["response_mime_type"] = "application/json"

    return genai.GenerativeModel(
        model_name=model_name or settings.model_name,
        generation_config=generation_config,
    )
