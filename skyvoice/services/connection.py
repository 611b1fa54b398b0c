"""Lifecycle supervision for the remote agent client.

``ConnectionManager`` builds the client, keeps a periodic health check
running and, whenever something fails, schedules a reconnect with
exponential backoff (5 s, 10 s, 20 s, 40 s, then 60 s).  None of its
failures propagate: they only flip ``healthy`` and extend the backoff.

Timers
──────
• one periodic health-check task (re-arming replaces the old one)
• at most one pending one-shot reconnect timer
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, Callable, Protocol

from skyvoice.services.scheduler import PeriodicTask

logger = logging.getLogger(__name__)

DEFAULT_BASE_DELAY_SECONDS = 5.0
DEFAULT_MAX_DELAY_SECONDS = 60.0
DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_HEALTH_CHECK_INTERVAL_SECONDS = 120.0


class RemoteAgentClient(Protocol):
    def validate(self) -> None: ...

    def probe(self) -> None: ...


@dataclass
class ConnectionState:
    initialized: bool = False
    healthy: bool = False
    reconnect_attempts: int = 0
    last_successful_connection: datetime | None = None


def backoff_delay(attempts: int, base: float, cap: float) -> float:
    """``min(base * 2**attempts, cap)``."""
    return min(base * (2 ** attempts), cap)


class ConnectionManager:
    """Owns the remote agent client and its health."""

    def __init__(
        self,
        client_factory: Callable[[], RemoteAgentClient],
        *,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        max_delay: float = DEFAULT_MAX_DELAY_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL_SECONDS,
        timer_factory: Callable[[float, Callable[[], Any]], Any] = threading.Timer,
    ) -> None:
        self._factory = client_factory
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self.health_check_interval = health_check_interval
        self._timer_factory = timer_factory

        self._client: RemoteAgentClient | None = None
        self._state = ConnectionState()
        self._backoff_capped = False
        self.last_delay: float | None = None

        self._lock = threading.Lock()
        self._reconnect_lock = threading.Lock()
        self._health_task: PeriodicTask | None = None
        self._reconnect_timer: Any = None
        self._closed = False

    # ── State accessors ──────────────────────────────────────────────

    @property
    def client(self) -> RemoteAgentClient | None:
        return self._client

    @property
    def healthy(self) -> bool:
        with self._lock:
            return self._state.initialized and self._state.healthy

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    @property
    def reconnect_attempts(self) -> int:
        return self._state.reconnect_attempts

    def state(self) -> ConnectionState:
        with self._lock:
            return ConnectionState(**asdict(self._state))

    def mark_unhealthy(self) -> None:
        with self._lock:
            self._state.healthy = False

    def mark_healthy(self) -> None:
        """Record a successful call on an initialized client."""
        with self._lock:
            if self._state.initialized:
                self._state.healthy = True
                self._state.last_successful_connection = datetime.now(UTC)

    def _mark_connected(self) -> None:
        with self._lock:
            self._state.initialized = True
            self._state.healthy = True
            self._state.reconnect_attempts = 0
            self._state.last_successful_connection = datetime.now(UTC)
            self._backoff_capped = False

    # ── Lifecycle ────────────────────────────────────────────────────

    def initialize(self) -> None:
        """Build the client once.  Failures schedule a reconnect instead of raising."""
        if self._state.initialized:
            return
        try:
            self._client = self._factory()
        except Exception as exc:
            logger.error("Failed to initialize agent client: %s", exc)
            with self._lock:
                self._state.initialized = False
                self._state.healthy = False
            self.schedule_reconnect()
            return
        self._mark_connected()
        self.start_health_check()
        logger.info("Agent client initialized with auto-reconnect enabled")

    def reconnect(self) -> bool:
        """Rebuild and validate the client.  Returns ``True`` on success."""
        if self._closed:
            return False
        with self._reconnect_lock:
            logger.info(
                "Reconnecting to agent service (attempt %d)…", self._state.reconnect_attempts,
            )
            try:
                client = self._factory()
                client.validate()
            except Exception as exc:
                logger.error(
                    "Reconnect attempt %d failed: %s", self._state.reconnect_attempts, exc,
                )
                self.mark_unhealthy()
                self.schedule_reconnect()
                return False

            self._client = client
            self._mark_connected()
        self._cancel_reconnect_timer()
        self.start_health_check()
        logger.info("Reconnected to agent service")
        return True

    def schedule_reconnect(self) -> float:
        """Arm the next reconnect and return its delay in seconds."""
        with self._lock:
            if self._state.reconnect_attempts >= self.max_attempts:
                logger.warning(
                    "Max reconnect attempts (%d) reached, resetting counter", self.max_attempts,
                )
                self._state.reconnect_attempts = 0
                self._backoff_capped = True
            if self._backoff_capped:
                delay = self.max_delay
            else:
                delay = backoff_delay(self._state.reconnect_attempts, self.base_delay, self.max_delay)
            self._state.reconnect_attempts += 1
            attempt = self._state.reconnect_attempts
            self.last_delay = delay

            if self._closed:
                return delay
            if self._reconnect_timer is not None:
                self._reconnect_timer.cancel()
            timer = self._timer_factory(delay, self.reconnect)
            timer.daemon = True
            self._reconnect_timer = timer
        timer.start()
        logger.info("Scheduled reconnect attempt %d in %.0fs", attempt, delay)
        return delay

    def perform_health_check(self) -> bool:
        """Probe the client; reconnect when it is missing or unhealthy."""
        if not self._state.initialized or self._client is None:
            logger.info("Health check: client not initialized, reconnecting…")
            return self.reconnect()
        try:
            self._client.probe()
        except Exception as exc:
            logger.warning("Health check failed (%s), scheduling reconnect", exc)
            self.mark_unhealthy()
            self.schedule_reconnect()
            return False
        self.mark_healthy()
        logger.debug("Health check passed")
        return True

    def start_health_check(self) -> None:
        if self._closed:
            return
        with self._lock:
            if self._health_task is not None:
                self._health_task.stop()
            self._health_task = PeriodicTask(
                "agent-health-check", self.health_check_interval, self.perform_health_check,
            ).start()

    def _cancel_reconnect_timer(self) -> None:
        with self._lock:
            if self._reconnect_timer is not None:
                self._reconnect_timer.cancel()
                self._reconnect_timer = None

    def shutdown(self) -> None:
        self._closed = True
        self._cancel_reconnect_timer()
        with self._lock:
            if self._health_task is not None:
                self._health_task.stop()
                self._health_task = None
            self._state.initialized = False
            self._state.healthy = False

    # ── Diagnostics ──────────────────────────────────────────────────

    def status(self) -> dict[str, Any]:
        state = self.state()
        last = state.last_successful_connection
        return {
            "initialized": state.initialized,
            "connection_healthy": state.initialized and state.healthy,
            "reconnect_attempts": state.reconnect_attempts,
            "last_successful_connection": last.isoformat() if last else None,
            "uptime_ms": int((datetime.now(UTC) - last).total_seconds() * 1000) if last else None,
            "health_check_running": bool(self._health_task and self._health_task.running),
        }
