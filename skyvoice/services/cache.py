"""Thread-safe LRU cache for query embeddings.

Spoken requests repeat a lot ("cancel my flight", "check in"), and every
classification starts with an embedding call, so the embedding gateway
keeps recent vectors keyed by normalised text.

• **OrderedDict** for O(1) promotion and eviction.
• Bounded by entry count; vectors of one model all have the same size,
  so a byte budget adds nothing.
• **threading.Lock** because request handlers run on a thread pool.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 2_048


class EmbeddingCache:
    """Least-recently-used map of ``text -> vector``."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._store: OrderedDict[str, tuple[float, ...]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(text: str) -> str:
        return " ".join(text.lower().split())

    def get(self, text: str) -> list[float] | None:
        """Return a copy of the cached vector (promoting it) or ``None``."""
        key = self.key(text)
        with self._lock:
            vector = self._store.get(key)
            if vector is None:
                self.misses += 1
                return None
            self._store.move_to_end(key)
            self.hits += 1
            return list(vector)

    def put(self, text: str, vector: list[float]) -> None:
        key = self.key(text)
        with self._lock:
            self._store[key] = tuple(vector)
            self._store.move_to_end(key)
            while len(self._store) > self._max_entries:
                evicted, _ = self._store.popitem(last=False)
                logger.debug("Embedding cache: evicted %r", evicted[:40])

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, text: str) -> bool:
        key = self.key(text)
        with self._lock:
            return key in self._store
