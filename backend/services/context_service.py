"""
Context service: extraction plus best-effort persistence.

Built once at process start by `build_context_service` and passed to callers;
nothing here is a module-level singleton.
"""

from typing import Any, Dict, List, Optional, Protocol

from config import AppConfig, load_config
from db.sqlite_client import SQLiteClient
from extraction import ExtractionCoordinator, ExtractionResult, RemoteTextAnalyzer
from logging_config import get_logger, setup_logging
from retrieval import RemoteEmbedder, SearchResult, SemanticRetriever

logger = get_logger(__name__)

FACT_CONTEXT_TYPE = "fact"


class ContextStore(Protocol):
    async def upsert_entity(
        self,
        session_id: str,
        entity_type: str,
        entity_value: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        ...

    async def list_entities(
        self, session_id: str, entity_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        ...

    async def add_context(
        self,
        session_id: str,
        context_type: str,
        key: str,
        value: str,
        confidence: float = 1.0,
        source_message_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        ...

    async def list_context(
        self, session_id: str, context_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        ...


class ContextService:
    def __init__(
        self,
        coordinator: ExtractionCoordinator,
        store: ContextStore,
        retriever: Optional[SemanticRetriever] = None,
    ):
        self.coordinator = coordinator
        self.store = store
        self.retriever = retriever

    async def extract_and_store(
        self, text: str, session_id: str, message_id: Optional[int] = None
    ) -> ExtractionResult:
        """
        Extract context from a message and persist facts and entities.

        Each item is stored on its own; a storage failure is logged and the
        remaining items are still attempted.
        """
        extraction = await self.coordinator.extract(text, session_id)

        stored_facts = 0
        for fact in extraction.facts:
            try:
                await self.store.add_context(
                    session_id,
                    FACT_CONTEXT_TYPE,
                    fact.key,
                    fact.value,
                    fact.confidence,
                    message_id,
                )
                stored_facts += 1
            except Exception as exc:
                logger.warning(f"Failed to store fact {fact.key!r}: {exc}")

        stored_entities = 0
        for entity in extraction.entities:
            try:
                await self.store.upsert_entity(
                    session_id,
                    entity.type,
                    entity.value,
                    {"confidence": entity.confidence},
                )
                stored_entities += 1
            except Exception as exc:
                logger.warning(f"Failed to store entity {entity.type}:{entity.value!r}: {exc}")

        logger.info(
            f"Stored {stored_facts}/{len(extraction.facts)} facts, "
            f"{stored_entities}/{len(extraction.entities)} entities "
            f"for session {session_id} (method={extraction.method})"
        )
        return extraction

    async def list_entities(
        self, session_id: str, entity_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return await self.store.list_entities(session_id, entity_type)

    async def list_context(
        self, session_id: str, context_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return await self.store.list_context(session_id, context_type)

    async def search_messages(
        self,
        session_id: str,
        query: str,
        limit: Optional[int] = None,
        min_similarity: Optional[float] = None,
        include_recent: Optional[int] = None,
    ) -> SearchResult:
        if self.retriever is None:
            raise RuntimeError("ContextService was built without a retriever")
        return await self.retriever.search(
            session_id,
            query,
            limit=limit,
            min_similarity=min_similarity,
            include_recent=include_recent,
        )

    async def index_message(self, message_id: int, text: str) -> List[float]:
        if self.retriever is None:
            raise RuntimeError("ContextService was built without a retriever")
        return await self.retriever.index_message(message_id, text)


def build_context_service(
    config: Optional[AppConfig] = None, store: Optional[SQLiteClient] = None
) -> ContextService:
    """Wire analyzer, embedder, store and retriever from configuration."""
    app_config = config or load_config()
    setup_logging(app_config.log_level)
    sqlite_store = store or SQLiteClient(app_config.database_url)
    coordinator = ExtractionCoordinator(RemoteTextAnalyzer(app_config.text_analysis))
    retriever = SemanticRetriever(
        RemoteEmbedder(app_config.embedding),
        sqlite_store,
        config=app_config.retrieval,
    )
    return ContextService(coordinator, sqlite_store, retriever=retriever)
