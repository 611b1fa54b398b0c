"""Vector indexes of labeled intent examples.

Two interchangeable backends implement :class:`IntentIndex`:

* :class:`InMemoryIntentIndex`: linear scan with cosine similarity.
  Zero dependencies beyond the process; used locally and as a fallback.
* :class:`QdrantIntentIndex`: a Qdrant collection with cosine distance.
  Qdrant reports cosine similarity as the score, so the classification
  threshold means the same thing on both backends.

Indexes store vectors; embedding text is the matcher's job.
"""

from __future__ import annotations

import logging
import math
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import Distance, PointStruct, VectorParams

logger = logging.getLogger(__name__)

_POINT_NAMESPACE = uuid.UUID("5b0c8d3e-6f5a-4f8e-9a57-2a1f3c0d9e41")


class IntentIndexError(Exception):
    """Raised when an index operation fails or receives malformed input."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


@dataclass(frozen=True)
class IndexedDocument:
    """One labeled example utterance together with its embedding."""

    id: str
    text: str
    intent: str
    category: str | None = None
    priority: str | None = None
    vector: tuple[float, ...] = field(default=(), repr=False)

    def payload(self) -> dict[str, Any]:
        return {
            "doc_id": self.id,
            "text": self.text,
            "intent": self.intent,
            "category": self.category,
            "priority": self.priority,
        }


@dataclass(frozen=True)
class ScoredDocument:
    document: IndexedDocument
    score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product over the product of magnitudes; 0.0 if either is zero."""
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a < 1e-12 or norm_b < 1e-12:
        return 0.0
    return dot / (norm_a * norm_b)


class IntentIndex(Protocol):
    name: str

    def ensure_ready(self) -> None: ...

    def upsert(self, document: IndexedDocument) -> None: ...

    def bulk_upsert(self, documents: Sequence[IndexedDocument]) -> list[dict[str, Any]]: ...

    def query(self, vector: Sequence[float], k: int = 1) -> list[ScoredDocument]: ...

    def clear(self) -> None: ...

    def count(self) -> int: ...

    def stats(self) -> dict[str, Any]: ...


# ── In-memory backend ───────────────────────────────────────────────


class InMemoryIntentIndex:
    """Process-local index.  The first stored vector fixes the dimension."""

    name = "memory"

    def __init__(self) -> None:
        self._documents: dict[str, IndexedDocument] = {}
        self._dimension: int | None = None
        self._lock = threading.Lock()

    @property
    def dimension(self) -> int | None:
        return self._dimension

    def ensure_ready(self) -> None:
        return None

    def _check_dimension(self, vector: Sequence[float]) -> None:
        if not vector:
            raise IntentIndexError("Document has no vector")
        if self._dimension is not None and len(vector) != self._dimension:
            raise IntentIndexError(
                f"Vector dimension {len(vector)} does not match index dimension {self._dimension}"
            )

    def upsert(self, document: IndexedDocument) -> None:
        with self._lock:
            self._check_dimension(document.vector)
            if self._dimension is None:
                self._dimension = len(document.vector)
            self._documents[document.id] = document

    def bulk_upsert(self, documents: Sequence[IndexedDocument]) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        for document in documents:
            try:
                self.upsert(document)
                results.append({"id": document.id, "status": "success"})
            except IntentIndexError as exc:
                results.append({"id": document.id, "status": "error", "error": str(exc)})
        return results

    def query(self, vector: Sequence[float], k: int = 1) -> list[ScoredDocument]:
        with self._lock:
            if not self._documents:
                return []
            self._check_dimension(vector)
            documents = list(self._documents.values())

        scored = [ScoredDocument(doc, cosine_similarity(vector, doc.vector)) for doc in documents]
        # Stable sort keeps insertion order among equal scores.
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored[:k]

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()
            self._dimension = None

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            intents: dict[str, int] = {}
            for doc in self._documents.values():
                intents[doc.intent] = intents.get(doc.intent, 0) + 1
        return {
            "backend": self.name,
            "document_count": sum(intents.values()),
            "intents": intents,
        }


# ── Qdrant backend ──────────────────────────────────────────────────


class QdrantIntentIndex:
    """Intent examples stored as points in a Qdrant collection.

    Pass ``location=":memory:"`` for Qdrant's embedded local mode.
    """

    name = "qdrant"

    def __init__(
        self,
        *,
        url: str | None = None,
        api_key: str | None = None,
        collection: str = "intent-vectors",
        vector_size: int = 1536,
        timeout: int = 30,
        location: str | None = None,
        client: QdrantClient | None = None,
    ) -> None:
        if client is None:
            if location is not None:
                client = QdrantClient(location=location)
            else:
                client = QdrantClient(url=url, api_key=api_key or None, timeout=timeout)
        self._client = client
        self.collection = collection
        self.vector_size = vector_size
        self._ready = False
        self._lock = threading.Lock()

    @staticmethod
    def point_id(doc_id: str) -> str:
        """Qdrant ids must be UUIDs or integers; derive a stable UUID."""
        return str(uuid.uuid5(_POINT_NAMESPACE, doc_id))

    def ensure_ready(self) -> None:
        """Create the collection if it is absent."""
        if self._ready:
            return
        with self._lock:
            if self._ready:
                return
            try:
                if not self._client.collection_exists(self.collection):
                    self._client.create_collection(
                        collection_name=self.collection,
                        vectors_config=VectorParams(size=self.vector_size, distance=Distance.COSINE),
                    )
                    logger.info(
                        "Created Qdrant collection %s (size=%d, cosine)",
                        self.collection, self.vector_size,
                    )
            except (UnexpectedResponse, ResponseHandlingException) as exc:
                raise IntentIndexError(
                    f"Failed to prepare collection '{self.collection}': {exc}", cause=exc,
                ) from exc
            self._ready = True

    def _point(self, document: IndexedDocument) -> PointStruct:
        if len(document.vector) != self.vector_size:
            raise IntentIndexError(
                f"Vector dimension {len(document.vector)} does not match index dimension {self.vector_size}"
            )
        return PointStruct(
            id=self.point_id(document.id),
            vector=list(document.vector),
            payload=document.payload(),
        )

    def upsert(self, document: IndexedDocument) -> None:
        self.ensure_ready()
        point = self._point(document)
        try:
            self._client.upsert(collection_name=self.collection, points=[point], wait=True)
        except (UnexpectedResponse, ResponseHandlingException) as exc:
            raise IntentIndexError(f"Failed to upsert '{document.id}': {exc}", cause=exc) from exc

    def bulk_upsert(self, documents: Sequence[IndexedDocument]) -> list[dict[str, Any]]:
        self.ensure_ready()
        results: dict[str, dict[str, Any]] = {}
        points: list[PointStruct] = []
        for document in documents:
            try:
                points.append(self._point(document))
                results[document.id] = {"id": document.id, "status": "success"}
            except IntentIndexError as exc:
                results[document.id] = {"id": document.id, "status": "error", "error": str(exc)}

        if points:
            try:
                self._client.upsert(collection_name=self.collection, points=points, wait=True)
            except (UnexpectedResponse, ResponseHandlingException) as exc:
                logger.error("Bulk upsert of %d points failed: %s", len(points), exc)
                for entry in results.values():
                    if entry["status"] == "success":
                        entry.update(status="error", error=str(exc))
        return [results[doc.id] for doc in documents]

    def query(self, vector: Sequence[float], k: int = 1) -> list[ScoredDocument]:
        self.ensure_ready()
        if len(vector) != self.vector_size:
            raise IntentIndexError(
                f"Vector dimension {len(vector)} does not match index dimension {self.vector_size}"
            )
        try:
            response = self._client.query_points(
                collection_name=self.collection,
                query=list(vector),
                limit=k,
                with_payload=True,
            )
        except (UnexpectedResponse, ResponseHandlingException) as exc:
            raise IntentIndexError(f"Search failed in '{self.collection}': {exc}", cause=exc) from exc

        hits: list[ScoredDocument] = []
        for point in response.points:
            payload = point.payload or {}
            hits.append(
                ScoredDocument(
                    IndexedDocument(
                        id=str(payload.get("doc_id", point.id)),
                        text=payload.get("text", ""),
                        intent=payload.get("intent", "others"),
                        category=payload.get("category"),
                        priority=payload.get("priority"),
                    ),
                    float(point.score),
                )
            )
        return hits

    def clear(self) -> None:
        """Drop and recreate the collection so it accepts writes immediately."""
        with self._lock:
            try:
                self._client.delete_collection(self.collection)
            except UnexpectedResponse as exc:
                if exc.status_code != 404:
                    raise IntentIndexError(
                        f"Failed to delete collection '{self.collection}': {exc}", cause=exc,
                    ) from exc
            self._ready = False
        self.ensure_ready()
        logger.warning("Cleared Qdrant collection %s", self.collection)

    def count(self) -> int:
        self.ensure_ready()
        try:
            return self._client.count(collection_name=self.collection, exact=True).count
        except (UnexpectedResponse, ResponseHandlingException) as exc:
            raise IntentIndexError(f"Failed to count '{self.collection}': {exc}", cause=exc) from exc

    def stats(self) -> dict[str, Any]:
        return {
            "backend": self.name,
            "collection": self.collection,
            "document_count": self.count(),
        }
