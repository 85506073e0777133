from __future__ import annotations

"""Server-side rules that answer without calling the generative backend.

Rules are evaluated in order and the first match wins:
    1. closed_state: the message names a course that is in progress, finished or full.
    2. registration_followup: the user asks for "the link" and memory holds one.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .catalog import CourseRecord, EnrollmentState
from .config import MentionThresholds
from .conversation_store import ConversationState
from .matcher import DEFAULT_THRESHOLDS, is_direct_title_mention
from .utils import normalize_text

ROUTE_CLOSED_STATE = "closed_state"
ROUTE_REGISTRATION_FOLLOWUP = "registration_followup"

CLOSED_STATE_TEMPLATES = {
    EnrollmentState.FINALIZADO: "El curso *{title}* ya finalizó, no podés inscribirte.",
    EnrollmentState.EN_CURSO: (
        "En el curso *{title}*, los cupos están completos y no admite nuevas inscripciones. "
        "¿Querés más información del curso?"
    ),
    EnrollmentState.CUPO_COMPLETO: (
        "En el curso *{title}*, los cupos están completos y no admite nuevas inscripciones."
    ),
}
REGISTRATION_LINK_TEMPLATE = "Formulario de inscripción: {url}"

# Matched against normalized text, so accents and casing are already gone.
FOLLOWUP_RE = re.compile(r"\b(links?|enlaces?|inscrib\w*|inscripcion\w*|formularios?|anotarme)\b")


@dataclass(frozen=True)
class HardRuleReply:
    route: str
    text: str
    course_id: object = None


def is_registration_followup(message: str) -> bool:
    return bool(FOLLOWUP_RE.search(normalize_text(message)))


def closed_state_reply(course: CourseRecord) -> str:
    return CLOSED_STATE_TEMPLATES[course.state].format(title=course.title)


def find_closed_mention(
    message: str, courses: Iterable[CourseRecord], thresholds: MentionThresholds = DEFAULT_THRESHOLDS
) -> Optional[CourseRecord]:
    """Return the first course, in catalog order, that is closed and named in message."""
    for course in courses:
        if course.state in CLOSED_STATE_TEMPLATES and is_direct_title_mention(message, course.title, thresholds):
            return course
    return None


def resolve_hard_rule(
    message: str,
    courses: Iterable[CourseRecord],
    state: ConversationState,
    thresholds: MentionThresholds = DEFAULT_THRESHOLDS,
) -> Optional[HardRuleReply]:
    """Purpose: Pick a deterministic reply when business rules must not depend on the model.
    Inputs/Outputs: Inputs are the user message, the full catalog, the conversation state
        and mention thresholds; output is a HardRuleReply or None to fall through.
    Side Effects / State: None; the caller records the exchange in memory.
    Dependencies: Uses find_closed_mention and FOLLOWUP_RE.
    Failure Modes: None; no I/O happens on this path.
    If Removed: Finished or full courses could be offered by the model as joinable.
    Testing Notes: A message that names a finished course AND asks for the link must
        get the closed-state template, never the link shortcut.
    """
    # Rule 1: closed-state courses never get a registration link.
    target = find_closed_mention(message, courses, thresholds)
    if target is not None:
        return HardRuleReply(route=ROUTE_CLOSED_STATE, text=closed_state_reply(target), course_id=target.id)

    # Rule 2: reuse the link offered in a previous turn.
    suggested = state.last_suggested_course
    if suggested and suggested.registration_url and is_registration_followup(message):
        return HardRuleReply(
            route=ROUTE_REGISTRATION_FOLLOWUP,
            text=REGISTRATION_LINK_TEMPLATE.format(url=suggested.registration_url),
        )
    return None
