"""Centralized configuration for the SkyVoice dialogue backend.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/skyvoice/<VARIABLE_NAME>``.

Nothing here is strictly required at import time: a missing Bedrock agent
id is reported per call by the agent invoker, so the server can still
start and serve the intent endpoints.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or the lookup fails.
    """
    try:
        import boto3  # noqa: PLC0415 - lazy import, only needed on AWS

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/skyvoice/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _secret(name: str, default: str = "") -> str:
    """Return a config value from env-var or SSM, falling back to *default*."""
    value = os.getenv(name, "").strip()
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value.strip()

    return default


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", name, raw, default)
        return default


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


# ── AWS / Bedrock agent ─────────────────────────────────────────────
AWS_REGION: str = os.getenv("AWS_REGION", "us-east-1")
BEDROCK_AGENT_ID: str = _secret("BEDROCK_AGENT_ID")
BEDROCK_AGENT_ALIAS_ID: str = _secret("BEDROCK_AGENT_ALIAS_ID", "TSTALIASID")
AGENT_CONNECT_TIMEOUT_SECONDS: float = _float("AGENT_CONNECT_TIMEOUT_SECONDS", 10.0)
AGENT_READ_TIMEOUT_SECONDS: float = _float("AGENT_READ_TIMEOUT_SECONDS", 60.0)

# ── Connection supervision ──────────────────────────────────────────
HEALTH_CHECK_INTERVAL_SECONDS: float = _float("HEALTH_CHECK_INTERVAL_SECONDS", 120.0)
RECONNECT_BASE_DELAY_SECONDS: float = _float("RECONNECT_BASE_DELAY_SECONDS", 5.0)
RECONNECT_MAX_DELAY_SECONDS: float = _float("RECONNECT_MAX_DELAY_SECONDS", 60.0)
RECONNECT_MAX_ATTEMPTS: int = _int("RECONNECT_MAX_ATTEMPTS", 10)

# ── Sessions ────────────────────────────────────────────────────────
SESSION_MAX_AGE_MINUTES: int = _int("SESSION_MAX_AGE_MINUTES", 60)
SESSION_SWEEP_INTERVAL_MINUTES: int = _int("SESSION_SWEEP_INTERVAL_MINUTES", 30)

# ── Embeddings & intent index ───────────────────────────────────────
EMBEDDING_MODEL_ID: str = os.getenv("EMBEDDING_MODEL_ID", "amazon.titan-embed-text-v1")
EMBEDDING_DIMENSIONS: int = _int("EMBEDDING_DIMENSIONS", 1536)
INTENT_INDEX_BACKEND: str = os.getenv("INTENT_INDEX_BACKEND", "memory").strip().lower()
INTENT_THRESHOLD: float = _float("INTENT_THRESHOLD", 0.3)
INTENT_CORPUS_DIR: str = os.getenv("INTENT_CORPUS_DIR", "data/intents")

QDRANT_URL: str = os.getenv("QDRANT_URL", "http://localhost:6333")
QDRANT_API_KEY: str = _secret("QDRANT_API_KEY")
QDRANT_COLLECTION: str = os.getenv("QDRANT_COLLECTION", "intent-vectors")
QDRANT_TIMEOUT_SECONDS: int = _int("QDRANT_TIMEOUT_SECONDS", 30)

# ── Booking management endpoints ────────────────────────────────────
BOOKING_API_BASE_URL: str = os.getenv("BOOKING_API_BASE_URL", "http://localhost:9000")
BOOKING_API_KEY: str = _secret("BOOKING_API_KEY")
REQUEST_TIMEOUT_SECONDS: float = _float("REQUEST_TIMEOUT_SECONDS", 15.0)

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = _int("SERVER_PORT", 3000)
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:8081",
).split(",")
