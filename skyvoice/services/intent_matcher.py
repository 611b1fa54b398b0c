"""Similarity-based intent classification.

``IntentMatcher`` embeds the utterance, asks the index for the single
closest labeled example and applies the confidence threshold.  Anything
that goes wrong while classifying degrades to the ``others`` intent so a
dialogue turn never fails because the embedding model or the vector
store had a bad moment.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from langchain_core.embeddings import Embeddings

from skyvoice.services.embeddings import EmbeddingError
from skyvoice.services.intent_index import IndexedDocument, IntentIndex, IntentIndexError

logger = logging.getLogger(__name__)

FALLBACK_INTENT = "others"
DEFAULT_THRESHOLD = 0.3


@dataclass(frozen=True)
class IntentMatch:
    intent: str
    confidence: float
    category: str | None = None
    priority: str | None = None
    matched_text: str | None = None
    error: str | None = None

    @property
    def is_fallback(self) -> bool:
        return self.intent == FALLBACK_INTENT

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class IntentMatcher:
    """Classify free text against an :class:`IntentIndex`."""

    def __init__(
        self,
        embeddings: Embeddings,
        index: IntentIndex,
        *,
        default_threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self._embeddings = embeddings
        self._index = index
        self.default_threshold = default_threshold

    @property
    def index(self) -> IntentIndex:
        return self._index

    def classify(self, text: str, threshold: float | None = None) -> IntentMatch:
        threshold = self.default_threshold if threshold is None else threshold
        try:
            vector = self._embeddings.embed_query(text)
            hits = self._index.query(vector, k=1)
        except (EmbeddingError, IntentIndexError) as exc:
            logger.warning("Intent classification degraded to %s: %s", FALLBACK_INTENT, exc)
            return IntentMatch(intent=FALLBACK_INTENT, confidence=0.0, error=str(exc))

        if not hits:
            return IntentMatch(intent=FALLBACK_INTENT, confidence=0.0)

        best = hits[0]
        if best.score < threshold:
            logger.debug(
                "Best match %r scored %.4f < %.2f, using %s",
                best.document.intent, best.score, threshold, FALLBACK_INTENT,
            )
            return IntentMatch(intent=FALLBACK_INTENT, confidence=best.score)

        doc = best.document
        logger.debug("Classified %r as %s (%.4f)", text[:60], doc.intent, best.score)
        return IntentMatch(
            intent=doc.intent,
            confidence=best.score,
            category=doc.category,
            priority=doc.priority,
            matched_text=doc.text,
        )

    # ── Index population ─────────────────────────────────────────────

    @staticmethod
    def _document(raw: Mapping[str, Any], vector: list[float]) -> IndexedDocument:
        return IndexedDocument(
            id=str(raw["id"]),
            text=str(raw["text"]),
            intent=str(raw["intent"]),
            category=raw.get("category") or None,
            priority=raw.get("priority") or None,
            vector=tuple(vector),
        )

    def add(self, raw: Mapping[str, Any]) -> None:
        """Embed one labeled example and store it."""
        vector = self._embeddings.embed_documents([str(raw["text"])])[0]
        self._index.upsert(self._document(raw, vector))

    def add_batch(self, raws: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Embed and store every example independently.

        Returns one ``{"id", "status", "error"?}`` entry per input, in input
        order.  A failing embedding only fails its own document.
        """
        statuses: list[dict[str, Any]] = []
        ready: list[IndexedDocument] = []
        for raw in raws:
            doc_id = str(raw.get("id", ""))
            try:
                vector = self._embeddings.embed_documents([str(raw["text"])])[0]
                ready.append(self._document(raw, vector))
                statuses.append({"id": doc_id, "status": "pending"})
            except (EmbeddingError, KeyError, ValueError) as exc:
                logger.warning("Skipping intent example %s: %s", doc_id, exc)
                statuses.append({"id": doc_id, "status": "error", "error": str(exc)})

        if ready:
            try:
                stored = {entry["id"]: entry for entry in self._index.bulk_upsert(ready)}
            except IntentIndexError as exc:
                stored = {doc.id: {"id": doc.id, "status": "error", "error": str(exc)} for doc in ready}
            for i, entry in enumerate(statuses):
                if entry["status"] == "pending":
                    statuses[i] = stored.get(
                        entry["id"], {"id": entry["id"], "status": "error", "error": "not stored"},
                    )

        succeeded = sum(1 for s in statuses if s["status"] == "success")
        logger.info("Indexed %d/%d intent examples", succeeded, len(statuses))
        return statuses

    def clear(self) -> dict[str, Any]:
        self._index.clear()
        return {"success": True, "message": "Intent index cleared"}

    def stats(self) -> dict[str, Any]:
        return self._index.stats()
