"""Construction and lifecycle of the process-wide service objects.

The HTTP server and the CLI both call :func:`build_runtime` once and hold
the returned :class:`Runtime`.  Nothing here is a module-level global, so
tests can build as many isolated runtimes as they like.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from langchain_core.embeddings import Embeddings

from skyvoice import config
from skyvoice.dialogue import DialogueStateMachine
from skyvoice.services.agent_invoker import AgentInvoker
from skyvoice.services.bedrock_agent import BedrockAgentClient
from skyvoice.services.booking_client import BookingManagementClient
from skyvoice.services.connection import ConnectionManager
from skyvoice.services.embeddings import TitanEmbeddings
from skyvoice.services.intent_history import IntentHistory
from skyvoice.services.intent_index import InMemoryIntentIndex, IntentIndex, QdrantIntentIndex
from skyvoice.services.intent_matcher import IntentMatcher
from skyvoice.services.metrics import metrics
from skyvoice.services.scheduler import PeriodicTask
from skyvoice.services.sessions import SessionStore

logger = logging.getLogger(__name__)


def build_index(backend: str | None = None) -> IntentIndex:
    """Return the configured intent index (``memory`` or ``qdrant``)."""
    backend = (backend or config.INTENT_INDEX_BACKEND).lower()
    if backend == "qdrant":
        return QdrantIntentIndex(
            url=config.QDRANT_URL,
            api_key=config.QDRANT_API_KEY,
            collection=config.QDRANT_COLLECTION,
            vector_size=config.EMBEDDING_DIMENSIONS,
            timeout=config.QDRANT_TIMEOUT_SECONDS,
        )
    if backend != "memory":
        raise ValueError(f"Unknown intent index backend: {backend!r}")
    return InMemoryIntentIndex()


@dataclass
class Runtime:
    sessions: SessionStore
    history: IntentHistory
    connection: ConnectionManager
    invoker: AgentInvoker
    matcher: IntentMatcher
    dialogue: DialogueStateMachine
    bookings: BookingManagementClient
    session_max_age_minutes: float = config.SESSION_MAX_AGE_MINUTES
    session_sweep_interval_minutes: float = config.SESSION_SWEEP_INTERVAL_MINUTES
    _sweeper: PeriodicTask | None = field(default=None, repr=False)

    def sweep_sessions(self) -> int:
        removed = self.sessions.sweep(self.session_max_age_minutes)
        if removed:
            logger.info("Swept %d expired session(s)", removed)
        return removed

    def start(self) -> None:
        """Connect to the agent, prepare the index and start background timers."""
        self.connection.initialize()
        try:
            self.matcher.index.ensure_ready()
        except Exception:
            # Classification degrades to "others" until the index is reachable.
            logger.exception("Intent index %s is not ready", self.matcher.index.name)
        if self._sweeper is None:
            self._sweeper = PeriodicTask(
                "session-sweep",
                self.session_sweep_interval_minutes * 60,
                self.sweep_sessions,
            ).start()

    def shutdown(self) -> None:
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None
        self.invoker.end_remote_sessions()
        self.connection.shutdown()
        self.bookings.close()
        metrics.flush()

    def status(self) -> dict[str, Any]:
        return {
            "connection": self.connection.status(),
            "sessions": {
                "active_sessions": len(self.sessions),
                "max_age_minutes": self.session_max_age_minutes,
            },
            "agent": {
                "agent_id": self.invoker.agent_id or None,
                "alias_id": config.BEDROCK_AGENT_ALIAS_ID,
                "region": config.AWS_REGION,
            },
            "intent_index": self.matcher.index.name,
        }


def build_runtime(
    *,
    embeddings: Embeddings | None = None,
    index: IntentIndex | None = None,
    bookings: BookingManagementClient | None = None,
    connection: ConnectionManager | None = None,
) -> Runtime:
    """Wire every service from :mod:`skyvoice.config`; pass overrides to swap pieces."""
    sessions = SessionStore()
    history = IntentHistory()
    connection = connection or ConnectionManager(
        BedrockAgentClient,
        base_delay=config.RECONNECT_BASE_DELAY_SECONDS,
        max_delay=config.RECONNECT_MAX_DELAY_SECONDS,
        max_attempts=config.RECONNECT_MAX_ATTEMPTS,
        health_check_interval=config.HEALTH_CHECK_INTERVAL_SECONDS,
    )
    matcher = IntentMatcher(
        embeddings or TitanEmbeddings(),
        index or build_index(),
        default_threshold=config.INTENT_THRESHOLD,
    )
    bookings = bookings or BookingManagementClient()
    runtime = Runtime(
        sessions=sessions,
        history=history,
        connection=connection,
        invoker=AgentInvoker(connection, sessions),
        matcher=matcher,
        dialogue=DialogueStateMachine(matcher, history, bookings),
        bookings=bookings,
    )
    logger.debug("Runtime built with %s intent index", matcher.index.name)
    return runtime
