"""CloudWatch custom metrics for every remote dependency of the backend.

Each call to the Bedrock agent, the embedding model and the booking API
is recorded as a request count, a latency sample and (on failure) an
error count.  Data points are buffered in memory and pushed in batches
by a background :class:`PeriodicTask`.

When ``METRICS_ENABLED`` is not ``"true"`` nothing is sent; the buffer is
still filled so tests and local runs can inspect it, and ``flush`` just
drops it with a DEBUG log line.

Usage
-----
>>> from skyvoice.services.metrics import metrics
>>> with metrics.timed("bedrock-agent", "invoke_agent"):
...     client.invoke_agent(...)
>>> metrics.record_failure("booking-api", "cancel", error_type="timeout")
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Iterator

from skyvoice.services.scheduler import PeriodicTask

logger = logging.getLogger(__name__)

NAMESPACE = "SkyVoice"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # PutMetricData limit per request


def _datum(name: str, value: float, unit: str, **dimensions: str) -> dict[str, Any]:
    return {
        "MetricName": name,
        "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
        "Timestamp": datetime.now(UTC),
        "Value": value,
        "Unit": unit,
    }


class MetricsClient:
    """Buffered CloudWatch publisher for external-call metrics."""

    def __init__(self, enabled: bool | None = None) -> None:
        if enabled is None:
            enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._enabled = enabled
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None
        self._flush_task: PeriodicTask | None = None

        if self._enabled:
            self._flush_task = PeriodicTask(
                "metrics-flush", FLUSH_INTERVAL_SECONDS, self.flush,
            ).start()
            atexit.register(self.flush)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Recording ─────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        self._extend(
            _datum("RemoteCall/Count", 1, "Count", Service=service, Status="success"),
            _datum(
                "RemoteCall/Latency", latency_ms, "Milliseconds",
                Service=service, Operation=operation,
            ),
        )
        logger.debug("Metric: %s %s ok in %.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        points = [
            _datum("RemoteCall/Count", 1, "Count", Service=service, Status="failure"),
            _datum("RemoteCall/Errors", 1, "Count", Service=service, ErrorType=error_type),
        ]
        if latency_ms > 0:
            points.append(
                _datum(
                    "RemoteCall/Latency", latency_ms, "Milliseconds",
                    Service=service, Operation=operation,
                )
            )
        self._extend(*points)
        logger.debug(
            "Metric: %s %s failed (%s) after %.1fms",
            service, operation, error_type, latency_ms,
        )

    @contextmanager
    def timed(self, service: str, operation: str) -> Iterator[None]:
        """Record latency and outcome of the wrapped block.

        Exceptions are recorded under their class name and re-raised.
        """
        t0 = time.perf_counter()
        try:
            yield
        except Exception as exc:
            self.record_failure(
                service, operation,
                error_type=type(exc).__name__,
                latency_ms=(time.perf_counter() - t0) * 1000,
            )
            raise
        self.record_success(service, operation, latency_ms=(time.perf_counter() - t0) * 1000)

    # ── Publishing ────────────────────────────────────────────────────

    def flush(self) -> int:
        """Push buffered data points.  Returns how many were sent."""
        with self._lock:
            batch, self._buffer = self._buffer, []
        if not batch:
            return 0

        if not self._enabled:
            logger.debug("Metrics disabled, dropping %d data points", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for start in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[start : start + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    def close(self) -> None:
        if self._flush_task is not None:
            self._flush_task.stop()
        self.flush()

    def _extend(self, *points: dict[str, Any]) -> None:
        with self._lock:
            self._buffer.extend(points)


# ── Module-level singleton ──────────────────────────────────────────
metrics = MetricsClient()
