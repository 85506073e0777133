import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, List

ESCAPE_MAP = {
    "`": "&#96;",
    "*": "&#42;",
    "_": "&#95;",
    "<": "&lt;",
    ">": "&gt;",
    "{": "&#123;",
    "}": "&#125;",
}
ESCAPE_RE = re.compile(r"[`*_<>{}]")
URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)
URL_UNSAFE_RE = re.compile(r"[`*<>{}\"'\s]")
ELLIPSIS = "…"

MONTHS_ES = [
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
]

DEFAULT_COUNTRY_CODE = "54"


def normalize_text(text: Any) -> str:
    """Purpose: Normalize free-form text for stable matching against course titles.
    Inputs/Outputs: Input is any value; output is a lowercase string with diacritics
        removed, punctuation replaced by spaces, and whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by matcher, hard rules, and catalog.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Title matching and state normalization stop working.
    Testing Notes: normalize_text(normalize_text(x)) must equal normalize_text(x).
    """
    # Lowercase, strip combining marks, then keep only letters/numbers/whitespace.
    if not text:
        return ""
    lowered = str(text).lower()
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    cleaned = re.sub(r"[^\w\s]|_", " ", stripped)
    return re.sub(r"\s+", " ", cleaned).strip()


def tokenize(text: Any) -> List[str]:
    """Split normalized text into whitespace tokens."""
    normalized = normalize_text(text)
    return normalized.split(" ") if normalized else []


def sanitize_text(value: Any) -> str:
    """Purpose: Neutralize markup characters in catalog or user supplied text.
    Inputs/Outputs: Input is any value; output is a single-line string where
        backtick, asterisk, underscore, angle brackets and braces are HTML entities.
    Side Effects / State: None; pure function.
    Dependencies: Uses ESCAPE_MAP; called at catalog load and on every user turn.
    Failure Modes: None; None/empty values become "".
    If Removed: Raw markup from the catalog could reach the chat transport.
    Testing Notes: "<script>" must come back as "&lt;script&gt;".
    """
    # Escape markup characters first, then collapse whitespace.
    if value is None:
        return ""
    escaped = ESCAPE_RE.sub(lambda match: ESCAPE_MAP[match.group(0)], str(value))
    return re.sub(r"\s+", " ", escaped).strip()


def sanitize_url(value: Any) -> str:
    """Keep only the first http(s) URL in value, stripped of markup characters."""
    if not value:
        return ""
    match = URL_RE.search(str(value))
    if not match:
        return ""
    return URL_UNSAFE_RE.sub("", match.group(0))


def clamp(text: Any, max_chars: int = 1200) -> str:
    """Truncate text to max_chars, appending an ellipsis when cut."""
    value = "" if text is None else str(text)
    if len(value) > max_chars:
        return value[:max_chars] + ELLIPSIS
    return value


def readable_date(value: Any) -> str:
    """Purpose: Render an ISO date as a Spanish day-month phrase ("5 de enero").
    Inputs/Outputs: Input is an ISO date/datetime string; output is the phrase or "".
    Side Effects / State: None.
    Dependencies: Uses datetime.fromisoformat and MONTHS_ES.
    Failure Modes: Unparseable values return "" instead of raising.
    If Removed: Catalog records lose their human-readable start/end dates.
    Testing Notes: "2025-03-10" -> "10 de marzo"; "not-a-date" -> "".
    """
    # Timezone-aware values are read on their UTC calendar day.
    if not value or not isinstance(value, str):
        return ""
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return ""
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return f"{parsed.day} de {MONTHS_ES[parsed.month - 1]}"


def format_chat_id(number: str) -> str:
    """Purpose: Convert a phone number or chat id into a WhatsApp chat id.
    Inputs/Outputs: Input is a raw number ("0388 155-1234") or id; output is "<digits>@c.us".
    Side Effects / State: None.
    Dependencies: Used by the control-plane endpoints.
    Failure Modes: Ids already ending in @c.us or @g.us are returned unchanged.
    If Removed: /send-message and /clear-history cannot address chats by phone number.
    Testing Notes: Leading "0" is replaced by the country code.
    """
    # Pass through ids that already carry a WhatsApp suffix.
    raw = (number or "").strip()
    if raw.endswith("@c.us") or raw.endswith("@g.us"):
        return raw
    digits = re.sub(r"\D", "", raw)
    if digits.startswith("0"):
        digits = DEFAULT_COUNTRY_CODE + digits[1:]
    return f"{digits}@c.us" if digits else ""
