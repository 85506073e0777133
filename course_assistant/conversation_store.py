from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence

from .utils import clamp

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"


def last_entries(entries: Sequence[HistoryEntry], limit: int) -> List[HistoryEntry]:
    """Return the newest `limit` entries; a limit of zero or less keeps none."""
    if limit <= 0:
        return []
    return list(entries[-limit:])


@dataclass
class HistoryEntry:
    role: str
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "text": self.text}


@dataclass
class SuggestedCourse:
    """Course most recently offered with a registration link."""
    title: str
    registration_url: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "registration_url": self.registration_url}


@dataclass
class ConversationState:
    """Short-term memory for one chat: bounded history plus the last offered course."""
    conversation_id: str
    history_limit: int = 6
    max_chars: int = 1200
    history: List[HistoryEntry] = field(default_factory=list)
    last_suggested_course: Optional[SuggestedCourse] = None

    def record_user_turn(self, text: str) -> None:
        self._append(ROLE_USER, text)

    def record_exchange(self, user_text: str, reply: str) -> None:
        """Purpose: Append a user turn and the assistant reply, then trim history.
        Inputs/Outputs: Inputs are the sanitized user text and the reply; no return.
        Side Effects / State: Mutates history; oldest entries are dropped first.
        Dependencies: Uses clamp for per-entry length limits.
        Failure Modes: None.
        If Removed: The backend loses conversational context between turns.
        Testing Notes: After any number of exchanges len(history) <= history_limit.
        """
        # Each entry is clamped independently before trimming.
        self._append(ROLE_USER, user_text)
        self._append(ROLE_ASSISTANT, reply)

    def remember_course(self, title: str, registration_url: str) -> None:
        self.last_suggested_course = SuggestedCourse(title=title, registration_url=registration_url)

    def recent_history(self) -> List[HistoryEntry]:
        return last_entries(self.history, self.history_limit)

    def _append(self, role: str, text: str) -> None:
        self.history.append(HistoryEntry(role=role, text=clamp(text, self.max_chars)))
        self.history[:] = last_entries(self.history, self.history_limit)

    def to_dict(self) -> Dict[str, object]:
        return {
            "conversation_id": self.conversation_id,
            "history": [entry.to_dict() for entry in self.history],
            "last_suggested_course": (
                self.last_suggested_course.to_dict() if self.last_suggested_course else None
            ),
        }


class ConversationStore:
    """In-memory conversation states keyed by chat id, with per-conversation locks."""

    def __init__(self, history_limit: int = 6, max_chars: int = 1200) -> None:
        """Purpose: Initialize empty state and lock maps.
        Inputs/Outputs: Inputs are the history cap and per-entry char limit; no return.
        Side Effects / State: None; states live for the process lifetime only.
        Dependencies: threading.Lock for map insertion and per-key serialization.
        Failure Modes: None.
        If Removed: Follow-up shortcuts and history context disappear.
        Testing Notes: Concurrent first contact from distinct ids must not lose entries.
        """
        # The store-level lock guards both maps; per-key locks guard each state.
        self._history_limit = history_limit
        self._max_chars = max_chars
        self._states: Dict[str, ConversationState] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def get_or_create(self, conversation_id: str) -> ConversationState:
        with self._guard:
            state = self._states.get(conversation_id)
            if state is None:
                state = ConversationState(
                    conversation_id=conversation_id,
                    history_limit=self._history_limit,
                    max_chars=self._max_chars,
                )
                self._states[conversation_id] = state
            return state

    def get(self, conversation_id: str) -> Optional[ConversationState]:
        with self._guard:
            return self._states.get(conversation_id)

    def clear(self, conversation_id: str) -> bool:
        """Drop a conversation's memory; returns True if it existed."""
        with self._lock_for(conversation_id):
            with self._guard:
                return self._states.pop(conversation_id, None) is not None

    @contextmanager
    def lock(self, conversation_id: str) -> Iterator[ConversationState]:
        """Hold the conversation's lock for a read-modify-write and yield its state."""
        with self._lock_for(conversation_id):
            yield self.get_or_create(conversation_id)

    def snapshot(self, conversation_id: str) -> Dict[str, object]:
        state = self.get(conversation_id)
        if state is None:
            return ConversationState(conversation_id=conversation_id).to_dict()
        with self._lock_for(conversation_id):
            return state.to_dict()

    def _lock_for(self, conversation_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(conversation_id, threading.Lock())

    def __len__(self) -> int:
        with self._guard:
            return len(self._states)
