"""Send one user turn to the Bedrock agent and return a normalized result.

Retry policy
────────────
Up to ``MAX_RETRIES`` extra attempts for retryable failures (network
resets, timeouts, DNS failures, HTTP 5xx).  Before each retry the call
waits ``min(1 s * 2**attempt, 10 s)`` and forces a reconnect.  Anything
else, or running out of retries, yields a ``success: False`` envelope;
``invoke`` never raises.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime
from typing import Any

from botocore.exceptions import ClientError, HTTPClientError
from botocore.exceptions import ConnectionError as BotoConnectionError

from skyvoice.config import BEDROCK_AGENT_ID
from skyvoice.services.bedrock_agent import AgentConfigurationError
from skyvoice.services.connection import ConnectionManager
from skyvoice.services.metrics import metrics
from skyvoice.services.sessions import Session, SessionStore

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
MAX_BACKOFF_SECONDS = 10.0
EMPTY_RESPONSE_TEXT = "No response from agent"

_RETRYABLE_EXCEPTIONS = (BotoConnectionError, HTTPClientError, TimeoutError, ConnectionError)
_RETRYABLE_STATUS_CODES = frozenset({500, 502, 503, 504})
# Errors raised mid-stream carry a code but no HTTP status.
_RETRYABLE_ERROR_CODES = frozenset(
    {"internalserverexception", "serviceunavailableexception", "badgatewayexception"}
)


def _status_code(exc: Exception) -> int | None:
    if isinstance(exc, ClientError):
        return exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return None


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code") or "").lower()
    return ""


def is_retryable(exc: Exception) -> bool:
    if isinstance(exc, AgentConfigurationError):
        return False
    if isinstance(exc, _RETRYABLE_EXCEPTIONS):
        return True
    if _status_code(exc) in _RETRYABLE_STATUS_CODES:
        return True
    if _error_code(exc) in _RETRYABLE_ERROR_CODES:
        return True
    message = str(exc).lower()
    return "timeout" in message or "timed out" in message or "connection" in message


def humanize_error(exc: Exception) -> str:
    """Turn an exception into a message a client can act on."""
    if isinstance(exc, AgentConfigurationError):
        return str(exc)
    message = str(exc)
    if _status_code(exc) in (400, 404):
        if "Agent not found" in message:
            return "Agent not found. Check your BEDROCK_AGENT_ID."
        if "Alias not found" in message:
            return "Agent alias not found. Check your BEDROCK_AGENT_ALIAS_ID."
        if "not prepared" in message:
            return "Agent is not prepared. Prepare the agent in the AWS console."
    if is_retryable(exc):
        return "The assistant is temporarily unavailable. Retrying automatically…"
    return message or "Unknown error occurred"


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


class AgentInvoker:
    """Voice-prompt path: prompt → session → remote agent → envelope."""

    def __init__(
        self,
        connection: ConnectionManager,
        sessions: SessionStore,
        *,
        agent_id: str | None = None,
        max_retries: int = MAX_RETRIES,
        sleep=time.sleep,
    ) -> None:
        self._connection = connection
        self._sessions = sessions
        self.agent_id = (agent_id if agent_id is not None else BEDROCK_AGENT_ID).strip()
        self.max_retries = max_retries
        self._sleep = sleep

    # ── Result envelopes ─────────────────────────────────────────────

    def _config_failure(self, message: str, user_id: str) -> dict[str, Any]:
        return {
            "success": False,
            "error": message,
            "error_type": "configuration",
            "retry_count": 0,
            "user_id": user_id,
            "connection_status": self._connection_status(),
            "timestamp": _timestamp(),
        }

    def _connection_status(self) -> str:
        return "healthy" if self._connection.healthy else "reconnecting"

    @staticmethod
    def _collect(stream) -> tuple[str, list[dict[str, Any]]]:
        """Join streamed text chunks and gather citations."""
        parts: list[str] = []
        citations: list[dict[str, Any]] = []
        for event in stream:
            chunk = event.get("chunk") if isinstance(event, dict) else None
            if not chunk:
                continue
            raw = chunk.get("bytes")
            if raw:
                try:
                    parts.append(raw.decode("utf-8") if isinstance(raw, bytes) else str(raw))
                except UnicodeDecodeError as exc:
                    logger.warning("Skipping undecodable response chunk: %s", exc)
            attribution = chunk.get("attribution") or {}
            citations.extend(attribution.get("citations") or [])
        return "".join(parts), citations

    # ── Public API ───────────────────────────────────────────────────

    def invoke(self, prompt: str, user_id: str = "default") -> dict[str, Any]:
        if not prompt or not prompt.strip():
            return self._config_failure("Prompt cannot be empty", user_id)

        if not self.agent_id:
            return self._config_failure(
                "BEDROCK_AGENT_ID is not configured. Set it in .env or SSM.", user_id,
            )

        if not self._connection.healthy:
            logger.info("Connection unhealthy, reconnecting before invoke…")
            self._connection.reconnect()

        session = self._sessions.record_message(user_id)
        text = prompt.strip()
        last_exc: Exception = RuntimeError("unreachable")
        attempt = 0

        for attempt in range(self.max_retries + 1):
            logger.info(
                "Invoking agent | user=%s chars=%d attempt=%d", user_id, len(text), attempt + 1,
            )
            t0 = time.perf_counter()
            try:
                client = self._connection.client
                if client is None:
                    raise ConnectionError("Agent client is not connected")
                with metrics.timed("bedrock-agent", "invoke_agent"):
                    response_text, citations = self._collect(client.invoke(session.session_id, text))
                self._connection.mark_healthy()
                return self._success(session, user_id, response_text, citations, t0)
            except Exception as exc:
                last_exc = exc
                logger.error(
                    "Agent error on attempt %d: %s (%s)", attempt + 1, exc, type(exc).__name__,
                )
                if not is_retryable(exc):
                    break
                self._connection.mark_unhealthy()
                if attempt >= self.max_retries:
                    break
                delay = min(INITIAL_BACKOFF_SECONDS * (2 ** attempt), MAX_BACKOFF_SECONDS)
                logger.info("Retrying (%d/%d) in %.0fs", attempt + 1, self.max_retries, delay)
                self._sleep(delay)
                self._connection.reconnect()

        return self._failure(session, user_id, last_exc, attempt)

    def _success(
        self,
        session: Session,
        user_id: str,
        response_text: str,
        citations: list[dict[str, Any]],
        t0: float,
    ) -> dict[str, Any]:
        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        logger.info("Agent responded in %dms", elapsed_ms)
        return {
            "success": True,
            "response": response_text.strip() or EMPTY_RESPONSE_TEXT,
            "session_id": session.session_id,
            "message_count": session.message_count,
            "user_id": user_id,
            "citations": citations,
            "processing_time_ms": elapsed_ms,
            "connection_status": "healthy",
            "timestamp": _timestamp(),
        }

    def _failure(
        self, session: Session, user_id: str, exc: Exception, attempt: int,
    ) -> dict[str, Any]:
        if isinstance(exc, AgentConfigurationError):
            error_type = "configuration"
        elif is_retryable(exc):
            error_type = "transient"
        else:
            error_type = "agent"
        details: dict[str, Any] = {"status_code": _status_code(exc)}
        if isinstance(exc, ClientError):
            details["code"] = exc.response.get("Error", {}).get("Code")
            details["request_id"] = exc.response.get("ResponseMetadata", {}).get("RequestId")
        return {
            "success": False,
            "error": humanize_error(exc),
            "error_type": error_type,
            "details": details,
            "retry_count": attempt,
            "session_id": session.session_id,
            "user_id": user_id,
            "connection_status": self._connection_status(),
            "timestamp": _timestamp(),
        }

    def end_remote_sessions(self) -> None:
        """Tell the agent every live session is over (best effort, on shutdown)."""
        client = self._connection.client
        if client is None or not self._connection.healthy:
            return
        for user_id, session in self._sessions.snapshot().items():
            try:
                client.end_session(session.session_id)
            except Exception as exc:
                logger.debug("Ignoring error ending session for %s: %s", user_id, exc)
