from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger("course_assistant.prompts")

VERSION_RE = re.compile(r"^\s*version\s*:\s*(\S+)\s*$", re.IGNORECASE)

FALLBACK_INSTRUCTIONS = (
    'Eres "Camila", asistente de cursos de oficios. Respondes SÓLO con la información '
    "disponible de los cursos. No inventes. Si no hay información, decilo con amabilidad."
)


@dataclass(frozen=True)
class Instructions:
    """Behavioral instructions for the backend, versioned as configuration."""
    version: str
    text: str


def load_prompt(prompt_path: Path) -> str:
    """Purpose: Load a prompt file as UTF-8 text and strip BOM if present.
    Inputs/Outputs: Input is a Path to the prompt file; output is the decoded string.
    Side Effects / State: None; pure function reading the filesystem.
    Dependencies: Uses Path.read_text/read_bytes; used by load_instructions.
    Failure Modes: UnicodeDecodeError triggers a fallback decode with errors ignored,
        which can drop invalid bytes. Missing files raise OSError.
    If Removed: Instructions cannot be read and every reply uses the fallback text.
    Testing Notes: Validate BOM-stripping and fallback decoding on non-UTF8 files.
    """
    # Read as UTF-8 and fall back to a tolerant decode if needed.
    try:
        return prompt_path.read_text(encoding="utf-8").lstrip("\ufeff")
    except UnicodeDecodeError:
        raw = prompt_path.read_bytes()
        text = raw.decode("utf-8", errors="ignore")
        return text.lstrip("\ufeff")


def load_instructions(prompt_path: Path) -> Instructions:
    """Read an instructions file whose first line may be a "version: X" header."""
    try:
        text = load_prompt(prompt_path)
    except OSError as exc:
        logger.warning("could not load instructions path=%s error=%s", prompt_path, exc)
        return Instructions(version="fallback", text=FALLBACK_INSTRUCTIONS)

    lines = text.splitlines()
    version = "unversioned"
    if lines:
        match = VERSION_RE.match(lines[0])
        if match:
            version = match.group(1)
            lines = lines[1:]
    body = "\n".join(lines).strip()
    if not body:
        logger.warning("empty instructions path=%s", prompt_path)
        return Instructions(version="fallback", text=FALLBACK_INSTRUCTIONS)
    logger.info("instructions loaded path=%s version=%s", prompt_path.name, version)
    return Instructions(version=version, text=body)
