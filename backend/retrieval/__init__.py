from .embedder import Embedder, RemoteEmbedder
from .retriever import (
    REASON_RECENT,
    REASON_SEMANTIC,
    MessageStore,
    ScoredMessage,
    SearchResult,
    SemanticRetriever,
)
from .similarity import cosine_similarity

__all__ = [
    "REASON_RECENT",
    "REASON_SEMANTIC",
    "Embedder",
    "MessageStore",
    "RemoteEmbedder",
    "ScoredMessage",
    "SearchResult",
    "SemanticRetriever",
    "cosine_similarity",
]
