from __future__ import annotations

import logging
from typing import List, Optional

import google.generativeai as genai

from .config import Settings
from .grounding import GenerationRequest

logger = logging.getLogger("course_assistant.gemini")

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_ONLY_HIGH"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_ONLY_HIGH"},
]


class BackendNotConfigured(ValueError):
    """Raised when no API key is available for the generative backend."""


class GenerationError(RuntimeError):
    """Raised when the backend call fails, is blocked, or returns no text."""


class GeminiClient:
    """Thin wrapper around the Gemini SDK with fixed generation and safety settings."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK and remember the default model.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures the SDK API key globally.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises BackendNotConfigured if API key or model name is missing.
        If Removed: Generated replies cannot be produced; only hard rules answer.
        Testing Notes: Validate a missing key raises BackendNotConfigured.
        """
        # Configure API key and remember generation defaults.
        if not settings.gemini_api_key:
            raise BackendNotConfigured("GEMINI_API_KEY is required")
        self._default_model = _normalize_model_name(settings.gemini_model)
        if not self._default_model:
            raise BackendNotConfigured("GEMINI_MODEL is required")
        genai.configure(api_key=settings.gemini_api_key)
        self._temperature = settings.gemini_temperature

    def generate_reply(
        self,
        request: GenerationRequest,
        model: Optional[str] = None,
        max_output_tokens: int = 2048,
    ) -> str:
        """Purpose: Generate a reply for one grounded conversation turn.
        Inputs/Outputs: Input is a GenerationRequest; returns stripped reply text.
        Side Effects / State: Performs a network call.
        Dependencies: Uses genai.GenerativeModel.generate_content and to_contents.
        Failure Modes: SDK errors, blocked prompts, and empty output raise GenerationError.
        If Removed: The generative path of the assistant stops working.
        Testing Notes: Mock the SDK model and verify contents/system_instruction.
        """
        # The system blocks travel as one system instruction; history becomes contents.
        model_name = _normalize_model_name(model) if model else self._default_model
        system_instruction = "\n\n".join(request.system_blocks())
        # Candidate hints change per turn, so the model object is built per call.
        generative_model = genai.GenerativeModel(model_name, system_instruction=system_instruction)
        logger.debug("gemini call model=%s history=%d", model_name, len(request.history))
        try:
            response = generative_model.generate_content(
                to_contents(request),
                generation_config={
                    "temperature": self._temperature,
                    "max_output_tokens": max_output_tokens,
                },
                safety_settings=DEFAULT_SAFETY_SETTINGS,
            )
            text: Optional[str] = response.text
        except Exception as exc:
            raise GenerationError(f"Gemini call failed: {exc}") from exc
        if not text or not text.strip():
            raise GenerationError("Gemini returned an empty reply")
        return text.strip()


def to_contents(request: GenerationRequest) -> List[dict]:
    """Convert history and the user turn into Gemini role/parts contents."""
    contents: List[dict] = []
    for entry in request.history:
        if not entry.text:
            continue
        role = "user" if entry.role == "user" else "model"
        contents.append({"role": role, "parts": [{"text": entry.text}]})
    contents.append({"role": "user", "parts": [{"text": request.user_turn}]})
    return contents


def _normalize_model_name(name: Optional[str]) -> str:
    """Strip a "models/" prefix and whitespace from a model name."""
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
