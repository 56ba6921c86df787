"""
Client for the remote embedding capability.

Unlike entity analysis, failures here are raised: semantic search has nothing
to return without a query vector.
"""

import math
from typing import Any, List, Optional, Protocol

import httpx

from config import RemoteServiceConfig
from errors import EmbeddingError, ValidationError
from logging_config import get_logger
from remote_client import build_envelope, new_request_id, post_json

logger = get_logger(__name__)

EMBEDDING_ACTION = "embedding.generate"


class Embedder(Protocol):
    async def embed(self, text: str) -> List[float]:
        ...


class RemoteEmbedder:
    def __init__(
        self,
        config: RemoteServiceConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport

    async def embed(self, text: str) -> List[float]:
        """
        Generate an embedding vector for `text`.

        Raises:
            ValidationError: if text is blank
            EmbeddingError: on transport failure, timeout or malformed response
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("text to embed must not be empty")

        request_id = new_request_id("req")
        body = build_envelope(
            self.config,
            EMBEDDING_ACTION,
            request_id,
            {"text": text, "options": {"normalize": True, "pooling": "mean"}},
        )
        headers = {
            "X-API-Key": self.config.api_key,
            "X-Request-ID": request_id,
        }

        try:
            response = await post_json(
                self.config, EMBEDDING_ACTION, body, headers, transport=self._transport
            )
        except httpx.TimeoutException as exc:
            logger.error(f"Embedding request timed out after {self.config.timeout_sec}s: {exc}")
            raise EmbeddingError(f"Failed to generate embedding: timed out ({exc})") from exc
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, TypeError) as exc:
            logger.error(f"Embedding generation failed: {exc}")
            raise EmbeddingError(f"Failed to generate embedding: {exc}") from exc

        embedding = self._extract_embedding_from_response(response)
        if embedding is None:
            logger.error(f"Embedding response invalid (request {request_id})")
            raise EmbeddingError("Failed to generate embedding: response has no embedding vector")
        return embedding

    @staticmethod
    def _extract_embedding_from_response(payload: Any) -> Optional[List[float]]:
        if not isinstance(payload, dict):
            return None
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        candidate = data.get("embedding")
        if not isinstance(candidate, list) or not candidate:
            return None
        if any(isinstance(v, bool) for v in candidate):
            return None
        try:
            vector = [float(v) for v in candidate]
        except (TypeError, ValueError, OverflowError):
            return None
        if not all(math.isfinite(v) for v in vector):
            return None
        return vector
