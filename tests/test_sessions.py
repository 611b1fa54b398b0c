"""Tests for the per-user session store."""

from __future__ import annotations

import re
import threading
from datetime import UTC, datetime, timedelta

from skyvoice.services.sessions import SessionStore, new_session_id


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 8, 20, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class TestSessionIds:
    def test_format(self):
        assert re.fullmatch(r"session-\d{13}-[0-9a-f]{9}", new_session_id())

    def test_unique(self):
        assert len({new_session_id() for _ in range(100)}) == 100


class TestGetOrCreate:
    def test_same_user_gets_same_session(self):
        clock = FakeClock()
        store = SessionStore(clock=clock)
        first = store.get_or_create("alice")
        clock.advance(seconds=5)
        second = store.get_or_create("alice")

        assert first.session_id == second.session_id
        assert second.last_activity >= first.last_activity
        assert second.last_activity - first.last_activity == timedelta(seconds=5)

    def test_last_activity_never_moves_backwards(self):
        clock = FakeClock()
        store = SessionStore(clock=clock)
        first = store.get_or_create("alice")
        clock.advance(seconds=-30)
        second = store.get_or_create("alice")
        assert second.last_activity == first.last_activity

    def test_different_users_get_different_sessions(self):
        store = SessionStore()
        assert store.get_or_create("a").session_id != store.get_or_create("b").session_id
        assert len(store) == 2

    def test_returns_copies(self):
        store = SessionStore()
        session = store.get_or_create("alice")
        session.message_count = 99
        assert store.get("alice").message_count == 0


class TestRecordMessage:
    def test_counts_messages(self):
        store = SessionStore()
        store.record_message("alice")
        store.record_message("alice")
        assert store.record_message("alice").message_count == 3

    def test_creates_session_lazily(self):
        store = SessionStore()
        assert store.get("bob") is None
        session = store.record_message("bob")
        assert session.message_count == 1
        assert store.get("bob").session_id == session.session_id

    def test_concurrent_increments_are_not_lost(self):
        store = SessionStore()

        def worker():
            for _ in range(200):
                store.record_message("shared")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert store.get("shared").message_count == 1600

    def test_len_waits_for_the_store_lock(self):
        store = SessionStore()
        store.get_or_create("alice")
        sizes: list[int] = []
        reader = threading.Thread(target=lambda: sizes.append(len(store)))

        with store._lock:
            reader.start()
            reader.join(timeout=0.1)
            assert sizes == []
        reader.join(timeout=2)
        assert sizes == [1]


class TestGet:
    def test_does_not_refresh_activity(self):
        clock = FakeClock()
        store = SessionStore(clock=clock)
        created = store.get_or_create("alice")
        clock.advance(minutes=10)
        assert store.get("alice").last_activity == created.last_activity

    def test_info_shape(self):
        store = SessionStore()
        info = store.get_or_create("alice").info()
        assert set(info) == {"session_id", "created_at", "last_activity", "message_count", "is_active"}


class TestEnd:
    def test_end_existing_session(self):
        store = SessionStore()
        first = store.get_or_create("alice")
        assert store.end("alice") is True
        assert store.get("alice") is None
        assert store.get_or_create("alice").session_id != first.session_id

    def test_end_missing_session(self):
        assert SessionStore().end("nobody") is False


class TestSweep:
    def test_removes_only_stale_sessions(self):
        clock = FakeClock()
        store = SessionStore(clock=clock)
        store.get_or_create("old")
        clock.advance(minutes=45)
        store.get_or_create("recent")
        clock.advance(minutes=20)  # old: 65 min idle, recent: 20 min idle

        removed = store.sweep(max_age_minutes=60)

        assert removed == 1
        assert store.get("old") is None
        assert store.get("recent") is not None

    def test_boundary_is_not_removed(self):
        clock = FakeClock()
        store = SessionStore(clock=clock)
        store.get_or_create("edge")
        clock.advance(minutes=60)
        assert store.sweep(max_age_minutes=60) == 0

    def test_activity_keeps_session_alive(self):
        clock = FakeClock()
        store = SessionStore(clock=clock)
        store.get_or_create("alice")
        clock.advance(minutes=50)
        store.record_message("alice")
        clock.advance(minutes=50)
        assert store.sweep(max_age_minutes=60) == 0
