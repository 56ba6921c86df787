"""
Semantic retrieval over a session's messages.

Results combine two groups, in this order:
- the N most recent messages, unconditionally (reason "recent")
- older messages whose stored embedding is similar enough to the query
  (reason "semantic"), best first

The total never exceeds `limit` and a message appears at most once.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from config import RetrievalConfig
from errors import DimensionMismatch, ValidationError
from logging_config import get_logger

from .embedder import Embedder
from .similarity import cosine_similarity

logger = get_logger(__name__)

REASON_RECENT = "recent"
REASON_SEMANTIC = "semantic"


def _all_finite(vector: List[Any]) -> bool:
    try:
        return all(math.isfinite(v) for v in vector)
    except (TypeError, OverflowError):
        return False


class MessageStore(Protocol):
    async def list_messages(self, session_id: str) -> List[Dict[str, Any]]:
        ...

    async def store_embedding(self, message_id: int, vector: List[float]) -> None:
        ...


@dataclass
class ScoredMessage:
    message_id: Any
    similarity: float
    reason: str
    content: str = ""
    role: Optional[str] = None
    created_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    has_embedding: bool = False


@dataclass
class SearchResult:
    messages: List[ScoredMessage]
    query: str
    method: str = REASON_SEMANTIC
    stats: Dict[str, int] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.messages)


class SemanticRetriever:
    def __init__(
        self,
        embedder: Embedder,
        message_store: MessageStore,
        config: Optional[RetrievalConfig] = None,
    ):
        self.embedder = embedder
        self.message_store = message_store
        self.config = config or RetrievalConfig()

    @staticmethod
    def _score(
        query_embedding: List[float], message: Dict[str, Any]
    ) -> ScoredMessage:
        embedding = message.get("embedding")
        similarity = 0.0
        has_embedding = False
        if isinstance(embedding, list) and embedding and not _all_finite(embedding):
            logger.warning(f"Ignoring non-finite embedding of message {message.get('id')}")
        elif isinstance(embedding, list) and embedding:
            try:
                similarity = cosine_similarity(query_embedding, embedding)
                has_embedding = True
            except DimensionMismatch as exc:
                logger.warning(f"Ignoring embedding of message {message.get('id')}: {exc}")
        return ScoredMessage(
            message_id=message.get("id"),
            similarity=similarity,
            reason=REASON_SEMANTIC,
            content=message.get("content") or "",
            role=message.get("role"),
            created_at=message.get("created_at"),
            metadata=dict(message.get("metadata") or {}),
            has_embedding=has_embedding,
        )

    async def search(
        self,
        session_id: str,
        query: str,
        limit: Optional[int] = None,
        min_similarity: Optional[float] = None,
        include_recent: Optional[int] = None,
    ) -> SearchResult:
        """
        Rank a session's messages by recency and similarity to `query`.

        Raises:
            ValidationError: missing session_id/query or invalid bounds
            EmbeddingError: the query could not be embedded
        """
        if not isinstance(session_id, str) or not session_id.strip():
            raise ValidationError("session_id and query are required")
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("session_id and query are required")

        limit_value = self.config.limit if limit is None else int(limit)
        threshold = self.config.min_similarity if min_similarity is None else float(min_similarity)
        recent_value = self.config.include_recent if include_recent is None else int(include_recent)
        if limit_value < 1:
            raise ValidationError("limit must be >= 1")
        if recent_value < 0:
            raise ValidationError("include_recent must be >= 0")

        logger.info(f"Searching messages for: {query!r}")
        query_embedding = await self.embedder.embed(query)
        messages = await self.message_store.list_messages(session_id)

        if not messages:
            return SearchResult(
                messages=[],
                query=query,
                stats={
                    "total_messages": 0,
                    "recent_count": 0,
                    "semantic_count": 0,
                    "messages_with_embeddings": 0,
                },
            )

        scored = [self._score(query_embedding, message) for message in messages]

        recent = scored[: min(recent_value, limit_value)]
        for item in recent:
            item.reason = REASON_RECENT

        semantic_budget = max(0, limit_value - recent_value)
        candidates = [
            item
            for item in scored[recent_value:]
            if item.has_embedding and item.similarity >= threshold
        ]
        candidates.sort(key=lambda item: item.similarity, reverse=True)
        semantic = candidates[:semantic_budget]

        combined = recent + semantic
        logger.info(
            f"Found {len(combined)} messages ({len(recent)} recent, {len(semantic)} semantic)"
        )
        return SearchResult(
            messages=combined,
            query=query,
            stats={
                "total_messages": len(messages),
                "recent_count": len(recent),
                "semantic_count": len(semantic),
                "messages_with_embeddings": sum(1 for item in scored if item.has_embedding),
            },
        )

    async def index_message(self, message_id: int, text: str) -> List[float]:
        """Embed a message body and persist the vector for later searches."""
        embedding = await self.embedder.embed(text)
        await self.message_store.store_embedding(message_id, embedding)
        logger.info(f"Stored embedding for message {message_id}")
        return embedding
