"""Per-user agent sessions.

A session carries the opaque id the Bedrock agent uses to keep
conversation memory between turns.  Sessions are created lazily, touched
on every access and dropped either explicitly or by the periodic sweep.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Any, Callable

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    """``session-<epoch ms>-<9 hex chars>``; valid as a Bedrock session id."""
    return f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


@dataclass
class Session:
    session_id: str
    created_at: datetime
    last_activity: datetime
    message_count: int = 0

    def info(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
            "message_count": self.message_count,
            "is_active": True,
        }


class SessionStore:
    """Thread-safe ``user_id -> Session`` map.  Returns copies, never the
    stored objects, so callers cannot mutate shared state without the lock.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._now = clock or (lambda: datetime.now(UTC))

    def _touch(self, user_id: str) -> Session:
        now = self._now()
        session = self._sessions.get(user_id)
        if session is None:
            session = Session(session_id=new_session_id(), created_at=now, last_activity=now)
            self._sessions[user_id] = session
            logger.info("Created session %s for user %s", session.session_id, user_id)
        else:
            session.last_activity = max(now, session.last_activity)
        return session

    def get_or_create(self, user_id: str) -> Session:
        with self._lock:
            return replace(self._touch(user_id))

    def record_message(self, user_id: str) -> Session:
        """Get or create the session and count one more message on it."""
        with self._lock:
            session = self._touch(user_id)
            session.message_count += 1
            return replace(session)

    def get(self, user_id: str) -> Session | None:
        """Look up without refreshing ``last_activity``."""
        with self._lock:
            session = self._sessions.get(user_id)
            return replace(session) if session else None

    def end(self, user_id: str) -> bool:
        with self._lock:
            existed = self._sessions.pop(user_id, None) is not None
        if existed:
            logger.info("Ended session for user %s", user_id)
        return existed

    def sweep(self, max_age_minutes: float = 60) -> int:
        """Remove sessions idle for longer than *max_age_minutes*.

        Returns the number of sessions removed.
        """
        cutoff = self._now() - timedelta(minutes=max_age_minutes)
        with self._lock:
            stale = [uid for uid, s in self._sessions.items() if s.last_activity < cutoff]
            for uid in stale:
                del self._sessions[uid]
        if stale:
            logger.info("Swept %d inactive sessions", len(stale))
        return len(stale)

    def snapshot(self) -> dict[str, Session]:
        with self._lock:
            return {uid: replace(s) for uid, s in self._sessions.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
