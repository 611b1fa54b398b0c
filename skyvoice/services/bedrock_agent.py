"""Thin wrapper around the Bedrock Agent Runtime ``InvokeAgent`` API.

The connection manager owns an instance of :class:`BedrockAgentClient`
and rebuilds it on reconnect; the agent invoker streams turns through it.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

import boto3
from botocore.config import Config
from botocore.validate import validate_parameters

from skyvoice.config import (
    AGENT_CONNECT_TIMEOUT_SECONDS,
    AGENT_READ_TIMEOUT_SECONDS,
    AWS_REGION,
    BEDROCK_AGENT_ALIAS_ID,
    BEDROCK_AGENT_ID,
)
from skyvoice.services.sessions import new_session_id

logger = logging.getLogger(__name__)

HEALTH_CHECK_SESSION_ID = "health-check-session"


class AgentConfigurationError(Exception):
    """The agent cannot be called with the current configuration."""


class BedrockAgentClient:
    """One ``bedrock-agent-runtime`` client plus the agent/alias ids."""

    def __init__(
        self,
        agent_id: str | None = None,
        alias_id: str | None = None,
        *,
        region: str | None = None,
        client: Any = None,
    ) -> None:
        self.agent_id = (agent_id if agent_id is not None else BEDROCK_AGENT_ID).strip()
        self.alias_id = (alias_id or BEDROCK_AGENT_ALIAS_ID).strip()
        self._client = client or boto3.client(
            "bedrock-agent-runtime",
            region_name=region or AWS_REGION,
            config=Config(
                connect_timeout=AGENT_CONNECT_TIMEOUT_SECONDS,
                read_timeout=AGENT_READ_TIMEOUT_SECONDS,
                # Retries are driven by AgentInvoker so backoff is visible.
                retries={"max_attempts": 1},
                tcp_keepalive=True,
            ),
        )

    def _params(self, session_id: str, text: str, end_session: bool) -> dict[str, Any]:
        if not self.agent_id:
            raise AgentConfigurationError(
                "BEDROCK_AGENT_ID is not configured. Set it in .env or SSM."
            )
        return {
            "agentId": self.agent_id,
            "agentAliasId": self.alias_id,
            "sessionId": session_id,
            "inputText": text,
            "enableTrace": False,
            "endSession": end_session,
        }

    def invoke(self, session_id: str, text: str, *, end_session: bool = False) -> Iterable[dict[str, Any]]:
        """Send one turn; returns the completion event stream."""
        response = self._client.invoke_agent(**self._params(session_id, text, end_session))
        return response.get("completion") or []

    def validate(self) -> None:
        """Round-trip a throwaway turn to prove credentials and ids work."""
        for _ in self.invoke(new_session_id(), "Hello", end_session=True):
            pass

    def probe(self) -> None:
        """Build and validate a synthetic request without sending it."""
        operation = self._client.meta.service_model.operation_model("InvokeAgent")
        validate_parameters(
            self._params(HEALTH_CHECK_SESSION_ID, "health-check", True),
            operation.input_shape,
        )

    def end_session(self, session_id: str) -> None:
        for _ in self.invoke(session_id, "goodbye", end_session=True):
            pass
