"""Embedding gateway: text → fixed-length vector via Amazon Titan on
Bedrock Runtime.

Implements the LangChain ``Embeddings`` interface so any LangChain-aware
component can reuse it.  Query embeddings are cached (see
:mod:`skyvoice.services.cache`); document embeddings are not, since they
are only computed once per corpus load.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from langchain_core.embeddings import Embeddings

from skyvoice.config import (
    AGENT_CONNECT_TIMEOUT_SECONDS,
    AWS_REGION,
    EMBEDDING_MODEL_ID,
    REQUEST_TIMEOUT_SECONDS,
)
from skyvoice.services.cache import EmbeddingCache
from skyvoice.services.metrics import metrics

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when the embedding model cannot produce a vector."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message)


class TitanEmbeddings(Embeddings):
    """Bedrock Titan text embeddings with an in-process query cache."""

    def __init__(
        self,
        model_id: str | None = None,
        *,
        client: Any = None,
        cache: EmbeddingCache | None = None,
    ) -> None:
        self.model_id = model_id or EMBEDDING_MODEL_ID
        self._client = client
        self._cache = cache if cache is not None else EmbeddingCache()

    @property
    def client(self):
        """The ``bedrock-runtime`` client, created on first use."""
        if self._client is None:
            self._client = boto3.client(
                "bedrock-runtime",
                region_name=AWS_REGION,
                config=Config(
                    connect_timeout=AGENT_CONNECT_TIMEOUT_SECONDS,
                    read_timeout=REQUEST_TIMEOUT_SECONDS,
                    retries={"max_attempts": 2, "mode": "standard"},
                ),
            )
        return self._client

    def _invoke(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")
        try:
            with metrics.timed("bedrock-embeddings", "invoke_model"):
                response = self.client.invoke_model(
                    modelId=self.model_id,
                    body=json.dumps({"inputText": text}),
                    contentType="application/json",
                    accept="application/json",
                )
                raw = response["body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}", cause=exc) from exc

        try:
            body = json.loads(raw)
        except ValueError as exc:
            raise EmbeddingError(f"Model {self.model_id} returned a malformed body", cause=exc) from exc
        if not isinstance(body, dict):
            raise EmbeddingError(f"Model {self.model_id} returned an unexpected payload")

        vector = body.get("embedding")
        if not vector or not isinstance(vector, list):
            raise EmbeddingError(f"Model {self.model_id} returned no embedding")
        try:
            return [float(x) for x in vector]
        except (TypeError, ValueError) as exc:
            raise EmbeddingError(f"Model {self.model_id} returned a non-numeric embedding", cause=exc) from exc

    def embed_query(self, text: str) -> list[float]:
        cached = self._cache.get(text)
        if cached is not None:
            return cached
        vector = self._invoke(text)
        self._cache.put(text, vector)
        return vector

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._invoke(text) for text in texts]
