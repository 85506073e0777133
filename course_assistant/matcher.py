from __future__ import annotations

"""Lexical title matching: token-set Jaccard scores and direct-mention detection."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Set, Tuple

from .catalog import CourseRecord
from .config import MentionThresholds
from .utils import normalize_text, tokenize

DEFAULT_THRESHOLDS = MentionThresholds()


@dataclass(frozen=True)
class CandidateMatch:
    """Per-request title match; never stored."""
    id: Any
    titulo: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def token_set(text: str) -> Set[str]:
    return set(tokenize(text))


def _overlap(a: Set[str], b: Set[str]) -> Tuple[int, float]:
    # Returns (intersection size, Jaccard); empty sets score 0.
    if not a or not b:
        return 0, 0.0
    inter = len(a & b)
    return inter, inter / len(a | b)


def similarity(a: str, b: str) -> float:
    """Purpose: Jaccard similarity between the normalized token sets of a and b.
    Inputs/Outputs: Inputs are two strings; output is a float in [0, 1].
    Side Effects / State: None.
    Dependencies: Uses tokenize (normalize_text + whitespace split).
    Failure Modes: Either side empty after normalization returns 0.0.
    If Removed: Candidate ranking for the grounding context is lost.
    Testing Notes: Symmetric; similarity(a, a) == 1.0 for non-empty a.
    """
    # Compare unique words only; repetition does not change the score.
    return _overlap(token_set(a), token_set(b))[1]


def top_matches(courses: Iterable[CourseRecord], query: str, k: int = 3) -> List[CandidateMatch]:
    """Purpose: Rank courses by title similarity to the query.
    Inputs/Outputs: Inputs are courses, a query and k; returns up to k CandidateMatch.
    Side Effects / State: None.
    Dependencies: Uses similarity; sorted() is stable so ties keep catalog order.
    Failure Modes: Empty course list returns an empty list.
    If Removed: The backend loses its "most likely course" hints.
    Testing Notes: Equal scores must come back in catalog order.
    """
    # Normalize once, score every title, keep the k best.
    normalized_query = normalize_text(query)
    scored = [
        CandidateMatch(id=course.id, titulo=course.title, score=similarity(course.title, normalized_query))
        for course in courses
    ]
    scored.sort(key=lambda match: match.score, reverse=True)
    return scored[: max(k, 0)]


def is_direct_title_mention(
    query: str, title: str, thresholds: MentionThresholds = DEFAULT_THRESHOLDS
) -> bool:
    """Purpose: Decide whether a message refers to a course by its title.
    Inputs/Outputs: Inputs are the message, a title and thresholds; returns bool.
    Side Effects / State: None.
    Dependencies: Uses normalize_text and MentionThresholds.
    Failure Modes: Empty query or title never matches.
    If Removed: Closed-state hard rules cannot recognize the course being asked about.
    Testing Notes: Substring containment wins outright; otherwise Jaccard >= full, or
        overlap >= min_overlap with Jaccard >= partial.
    """
    # Substring containment first, then the dual token-overlap threshold.
    q = normalize_text(query)
    t = normalize_text(title)
    if not q or not t:
        return False
    if t in q:
        return True
    inter, jaccard = _overlap(set(q.split(" ")), set(t.split(" ")))
    if jaccard >= thresholds.full_jaccard:
        return True
    return inter >= thresholds.min_overlap and jaccard >= thresholds.partial_jaccard
