"""Shared test fixtures for the SkyVoice test suite."""

from __future__ import annotations

import os
from unittest.mock import MagicMock

import pytest
from langchain_core.embeddings import Embeddings


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py picks these up on load.
    """
    os.environ.setdefault("BEDROCK_AGENT_ID", "TESTAGENT01")
    os.environ.setdefault("BEDROCK_AGENT_ALIAS_ID", "TSTALIASID")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    os.environ.setdefault("METRICS_ENABLED", "false")
    os.environ.setdefault("INTENT_INDEX_BACKEND", "memory")


# ── Deterministic embeddings ─────────────────────────────────────────

KEYWORDS = ("book", "cancel", "change", "check", "bag", "status", "seat", "flight")


class KeywordEmbeddings(Embeddings):
    """One dimension per keyword plus a small constant bias dimension.

    Texts sharing keywords score high; texts with no keywords only share
    the bias and score well below the default threshold.  Any text
    containing ``FAIL`` raises :class:`EmbeddingError`.
    """

    dimensions = len(KEYWORDS) + 1

    def __init__(self) -> None:
        self.calls: list[str] = []

    def _vector(self, text: str) -> list[float]:
        from skyvoice.services.embeddings import EmbeddingError

        self.calls.append(text)
        if "FAIL" in text:
            raise EmbeddingError(f"embedding failed for {text!r}")
        lowered = text.lower()
        return [1.0 if word in lowered else 0.0 for word in KEYWORDS] + [0.1]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(t) for t in texts]


@pytest.fixture
def embeddings():
    return KeywordEmbeddings()


@pytest.fixture(params=["memory", "qdrant"])
def intent_index(request):
    """Each index backend in turn; Qdrant runs in embedded ``:memory:`` mode."""
    from skyvoice.services.intent_index import InMemoryIntentIndex, QdrantIntentIndex

    if request.param == "memory":
        return InMemoryIntentIndex()
    index = QdrantIntentIndex(
        location=":memory:",
        collection="test-intents",
        vector_size=KeywordEmbeddings.dimensions,
    )
    index.ensure_ready()
    return index


@pytest.fixture
def matcher(embeddings, intent_index):
    from skyvoice.services.intent_matcher import IntentMatcher

    return IntentMatcher(embeddings, intent_index, default_threshold=0.3)


SAMPLE_EXAMPLES = [
    {"id": "fb-1", "text": "book a flight", "intent": "flight_booking", "category": "booking", "priority": "high"},
    {"id": "fc-1", "text": "cancel my flight", "intent": "flight_cancellation", "category": "booking", "priority": "high"},
    {"id": "ch-1", "text": "change my flight", "intent": "flight_change", "category": "booking", "priority": "high"},
    {"id": "ci-1", "text": "check in for my flight", "intent": "flight_checkin", "category": "booking", "priority": "high"},
    {"id": "bg-1", "text": "where is my bag", "intent": "baggage_inquiry", "category": "support", "priority": "medium"},
]


@pytest.fixture
def populated_matcher(matcher):
    statuses = matcher.add_batch(SAMPLE_EXAMPLES)
    assert all(s["status"] == "success" for s in statuses)
    return matcher


# ── Timers ───────────────────────────────────────────────────────────


class FakeTimer:
    """Stands in for ``threading.Timer``; records arming instead of waiting."""

    instances: list["FakeTimer"] = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        return self.function()


@pytest.fixture
def fake_timer():
    FakeTimer.instances = []
    yield FakeTimer
    FakeTimer.instances = []


@pytest.fixture
def mock_http_response():
    """Factory fixture for creating mock httpx responses."""

    def _make(data, status_code: int = 200):
        mock = MagicMock()
        mock.status_code = status_code
        mock.json.return_value = data
        mock.text = str(data)
        return mock

    return _make
