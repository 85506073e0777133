from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


@dataclass(frozen=True)
class MentionThresholds:
    """Token-overlap thresholds for deciding that a message names a course title."""
    full_jaccard: float = 0.72
    partial_jaccard: float = 0.55
    min_overlap: int = 2


@dataclass(frozen=True)
class Settings:
    """Configuration container for the backend, catalog, memory limits, and gateway."""
    gemini_api_key: str
    gemini_model: str
    gemini_temperature: float
    catalog_path: Path
    instructions_path: Path
    history_limit: int
    message_max_chars: int
    context_max_chars: int
    context_fallback_courses: int
    candidate_limit: int
    mention: MentionThresholds
    gateway_url: str
    gateway_token: str
    gateway_timeout: float
    log_level: str

    @property
    def backend_configured(self) -> bool:
        return bool(self.gemini_api_key)


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables and filesystem paths.
    Dependencies: Uses os.getenv and BASE_DIR for default paths.
    Failure Modes: Invalid numeric env values raise ValueError.
    If Removed: App cannot configure the backend/catalog and fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve catalog and instruction paths, then build Settings.
    catalog_path = os.getenv("CATALOG_PATH")
    if catalog_path:
        catalog_file = Path(catalog_path)
    else:
        catalog_file = (BASE_DIR / ".." / "resources" / "cursos_2025.json").resolve()

    instructions_path = os.getenv("INSTRUCTIONS_PATH")
    if instructions_path:
        instructions_file = Path(instructions_path)
    else:
        instructions_file = (BASE_DIR / "prompts" / "assistant_instructions.txt").resolve()

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        gemini_temperature=float(os.getenv("GEMINI_TEMPERATURE", "0.2")),
        catalog_path=catalog_file,
        instructions_path=instructions_file,
        history_limit=int(os.getenv("HISTORY_LIMIT", "6")),
        message_max_chars=int(os.getenv("MESSAGE_MAX_CHARS", "1200")),
        context_max_chars=int(os.getenv("CONTEXT_MAX_CHARS", "18000")),
        context_fallback_courses=int(os.getenv("CONTEXT_FALLBACK_COURSES", "40")),
        candidate_limit=int(os.getenv("CANDIDATE_LIMIT", "3")),
        mention=MentionThresholds(
            full_jaccard=float(os.getenv("MENTION_FULL_JACCARD", "0.72")),
            partial_jaccard=float(os.getenv("MENTION_PARTIAL_JACCARD", "0.55")),
            min_overlap=int(os.getenv("MENTION_MIN_OVERLAP", "2")),
        ),
        gateway_url=os.getenv("WHATSAPP_GATEWAY_URL", "").rstrip("/"),
        gateway_token=os.getenv("WHATSAPP_GATEWAY_TOKEN", ""),
        gateway_timeout=float(os.getenv("WHATSAPP_GATEWAY_TIMEOUT", "30")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
