"""Recent intents per user, used to spot a pending multi-turn flow."""

from __future__ import annotations

import threading
from collections import deque

HISTORY_LENGTH = 5


class IntentHistory:
    """Bounded, insertion-ordered intent labels per user (oldest dropped)."""

    def __init__(self, max_length: int = HISTORY_LENGTH) -> None:
        self.max_length = max_length
        self._entries: dict[str, deque[str]] = {}
        self._lock = threading.Lock()

    def append(self, user_id: str, intent: str) -> None:
        with self._lock:
            entries = self._entries.get(user_id)
            if entries is None:
                entries = self._entries[user_id] = deque(maxlen=self.max_length)
            entries.append(intent)

    def recent(self, user_id: str) -> list[str]:
        with self._lock:
            return list(self._entries.get(user_id, ()))

    def resolve(self, user_id: str, intent: str) -> int:
        """Drop every occurrence of *intent*; returns how many were removed."""
        with self._lock:
            entries = self._entries.get(user_id)
            if not entries:
                return 0
            kept = [label for label in entries if label != intent]
            removed = len(entries) - len(kept)
            self._entries[user_id] = deque(kept, maxlen=self.max_length)
            return removed

    def clear(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)
