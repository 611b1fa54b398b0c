"""Background timers shared by the connection supervisor, the session
sweeper and the metrics flusher.

A :class:`PeriodicTask` owns one daemon thread that calls its function
every ``interval`` seconds until :meth:`stop` is called.  Tasks are
single-use: to re-arm, stop the old one and start a new one.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run *func* every *interval* seconds on a daemon thread."""

    def __init__(self, name: str, interval: float, func: Callable[[], object]) -> None:
        self.name = name
        self.interval = interval
        self._func = func
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> PeriodicTask:
        if self._thread is not None:
            raise RuntimeError(f"Periodic task {self.name!r} already started")
        self._thread = threading.Thread(target=self._loop, daemon=True, name=self.name)
        self._thread.start()
        logger.debug("Started periodic task %s (interval=%.0fs)", self.name, self.interval)
        return self

    def stop(self) -> None:
        """Signal the loop to exit.  Safe to call from inside the task itself."""
        self._stop.set()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self._func()
            except Exception:
                logger.exception("Periodic task %s failed", self.name)
