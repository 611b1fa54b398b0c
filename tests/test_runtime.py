"""Tests for runtime wiring and lifecycle."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from skyvoice.runtime import build_index, build_runtime
from skyvoice.services.booking_client import BookingManagementClient
from skyvoice.services.intent_index import InMemoryIntentIndex, QdrantIntentIndex


@pytest.fixture
def runtime(embeddings):
    connection = MagicMock(name="connection")
    connection.status.return_value = {"initialized": True, "connection_healthy": True}
    runtime = build_runtime(
        embeddings=embeddings,
        index=InMemoryIntentIndex(),
        bookings=MagicMock(spec=BookingManagementClient),
        connection=connection,
    )
    yield runtime
    runtime.shutdown()


class TestBuildIndex:
    def test_memory_backend(self):
        assert isinstance(build_index("memory"), InMemoryIntentIndex)

    def test_qdrant_backend(self, monkeypatch):
        monkeypatch.setattr("skyvoice.runtime.config.QDRANT_URL", "http://qdrant.test:6333")
        assert isinstance(build_index("qdrant"), QdrantIntentIndex)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown intent index backend"):
            build_index("faiss")


class TestRuntime:
    def test_components_share_state(self, runtime):
        assert runtime.invoker._sessions is runtime.sessions
        assert runtime.dialogue.history is runtime.history

    def test_start_initializes_connection_and_sweeper(self, runtime):
        runtime.start()
        runtime.connection.initialize.assert_called_once()
        assert runtime._sweeper is not None and runtime._sweeper.running

    def test_start_survives_index_failure(self, runtime):
        runtime.matcher.index.ensure_ready = MagicMock(side_effect=RuntimeError("down"))
        runtime.start()
        runtime.connection.initialize.assert_called_once()

    def test_shutdown_stops_everything(self, runtime):
        runtime.start()
        sweeper = runtime._sweeper
        runtime.shutdown()

        assert sweeper.running is False
        runtime.connection.shutdown.assert_called()
        runtime.bookings.close.assert_called()

    def test_sweep_sessions_uses_max_age(self, runtime):
        runtime.sessions.sweep = MagicMock(return_value=2)
        runtime.session_max_age_minutes = 15
        assert runtime.sweep_sessions() == 2
        runtime.sessions.sweep.assert_called_once_with(15)

    def test_status(self, runtime):
        runtime.sessions.get_or_create("u1")
        status = runtime.status()
        assert status["sessions"]["active_sessions"] == 1
        assert status["connection"]["connection_healthy"] is True
        assert status["intent_index"] == "memory"
