from __future__ import annotations

"""WhatsApp-safe rewriting of generated replies.

Each transform is total (never raises, returns the input when nothing matches) and
they run in the fixed order of POSTPROCESS_STEPS. Link/title extraction must happen
on the raw text, before emphasis and link markup are rewritten.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

REGISTRATION_HOST = r"(?:docs\.google\.com/forms|forms\.gle)"
ANCHOR_FORM_RE = re.compile(
    r"<a\s+href=\"(https?://" + REGISTRATION_HOST + r"/[^\"]+)\".*?>", re.IGNORECASE
)
MARKDOWN_FORM_RE = re.compile(r"\[[^\]]+\]\((https?://" + REGISTRATION_HOST + r"/[^)\s]+)\)", re.IGNORECASE)
STRONG_RE = re.compile(r"<strong>([^<]+)</strong>", re.IGNORECASE)
DOUBLE_EMPHASIS_RE = re.compile(r"\*\*(.+?)\*\*")
DATE_EMPHASIS_RE = re.compile(r"\*\*(\d{1,2}\s+de\s+[^\W\d_]+)\*\*", re.IGNORECASE)
MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\((https?://[^)]+)\)")
ANCHOR_RE = re.compile(r"<a\s+href=\"([^\"]+)\"[^>]*>([^<]+)</a>", re.IGNORECASE)
TAG_RE = re.compile(r"</?[^>]+>")


@dataclass(frozen=True)
class RegistrationLink:
    title: str
    url: str


@dataclass(frozen=True)
class ProcessedReply:
    text: str
    registration: Optional[RegistrationLink] = None


def extract_registration_link(raw: str) -> Optional[RegistrationLink]:
    """Purpose: Capture the registration form link and course title from raw output.
    Inputs/Outputs: Input is the raw backend text; output is a RegistrationLink or None.
    Side Effects / State: None.
    Dependencies: Uses ANCHOR_FORM_RE/MARKDOWN_FORM_RE and STRONG_RE/DOUBLE_EMPHASIS_RE.
    Failure Modes: No registration link returns None; a missing title yields "".
    If Removed: "mandame el link" follow-ups cannot be answered from memory.
    Testing Notes: Run on text with <a href="https://forms.gle/..."> and <strong>.
    """
    # Anchor tags are the documented format; markdown links are accepted too.
    match = ANCHOR_FORM_RE.search(raw) or MARKDOWN_FORM_RE.search(raw)
    if not match:
        return None
    title_match = STRONG_RE.search(raw)
    title = title_match.group(1).strip() if title_match else ""
    if not title:
        for emphasis in DOUBLE_EMPHASIS_RE.finditer(raw):
            if not DATE_EMPHASIS_RE.fullmatch(emphasis.group(0)):
                title = emphasis.group(1).strip()
                break
    return RegistrationLink(title=title, url=match.group(1).strip())


def deemphasize_dates(text: str) -> str:
    """Drop bold around dates such as "**5 de enero**"."""
    return DATE_EMPHASIS_RE.sub(r"\1", text)


def reemphasize(text: str) -> str:
    """Turn markdown "**bold**" into WhatsApp "*bold*"."""
    return DOUBLE_EMPHASIS_RE.sub(r"*\1*", text)


def delink(text: str) -> str:
    """Rewrite markdown and anchor links as "text: url"."""
    text = MARKDOWN_LINK_RE.sub(r"\1: \2", text)
    return ANCHOR_RE.sub(lambda match: f"{match.group(2)}: {match.group(1)}", text)


def strip_tags(text: str) -> str:
    return TAG_RE.sub("", text)


POSTPROCESS_STEPS: List[Tuple[str, Callable[[str], str]]] = [
    ("deemphasize_dates", deemphasize_dates),
    ("reemphasize", reemphasize),
    ("delink", delink),
    ("strip_tags", strip_tags),
]


def postprocess_reply(raw: str) -> ProcessedReply:
    """Purpose: Convert backend output into plain WhatsApp text and extract reusable state.
    Inputs/Outputs: Input is raw backend text; output is ProcessedReply(text, registration).
    Side Effects / State: None; the caller stores registration in conversation memory.
    Dependencies: Uses extract_registration_link then POSTPROCESS_STEPS in order.
    Failure Modes: None; unmatched patterns leave the text unchanged.
    If Removed: Markdown/HTML would reach users and link follow-ups would break.
    Testing Notes: Verify each step alone and the composed order on mixed markup.
    """
    # Extraction reads the untouched markup; rewriting comes after.
    raw = (raw or "").strip()
    registration = extract_registration_link(raw)
    text = raw
    for _name, step in POSTPROCESS_STEPS:
        text = step(text)
    return ProcessedReply(text=text.strip(), registration=registration)
