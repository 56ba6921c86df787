"""
SQLite client for conversation context storage.

This module implements:
- Entity store with atomic upsert (mention counting, first/last seen)
- Session context rows for extracted facts
- The message listing / embedding write capabilities used by semantic search
"""

import json
import math
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, Float, Index, Integer, String, Text, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from logging_config import get_logger

logger = get_logger(__name__)

Base = declarative_base()

_SQLITE_ADAPTERS_REGISTERED = False


def _register_sqlite_adapters() -> None:
    """
    Register explicit sqlite adapters for Python datetime objects.

    Python 3.12+ deprecates sqlite3's implicit default datetime adapter; raw
    `text()` statements below bind datetimes directly.
    """
    global _SQLITE_ADAPTERS_REGISTERED
    if _SQLITE_ADAPTERS_REGISTERED:
        return
    sqlite3.register_adapter(datetime, lambda value: value.isoformat(sep=" "))
    _SQLITE_ADAPTERS_REGISTERED = True


_register_sqlite_adapters()


def _utc_now() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def _utc_now_naive() -> datetime:
    """Naive UTC datetime; SQLite columns carry no zone."""
    return _utc_now().replace(tzinfo=None)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _load_json_object(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


# =============================================================================
# ORM Models
# =============================================================================


class SessionEntity(Base):
    """A named thing mentioned in a session, tracked by mention frequency.

    Identity is the exact (session_id, entity_type, entity_value) triple.
    """

    __tablename__ = "session_entities"
    __table_args__ = (
        Index(
            "idx_session_entities_identity",
            "session_id",
            "entity_type",
            "entity_value",
            unique=True,
        ),
        Index("idx_session_entities_session", "session_id", "mention_count"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(128), nullable=False)
    entity_type = Column(String(64), nullable=False)
    entity_value = Column(Text, nullable=False)
    confidence = Column(Float, nullable=True)
    mention_count = Column(Integer, nullable=False, default=1)
    first_mentioned_at = Column(DateTime, nullable=False, default=_utc_now_naive)
    last_mentioned_at = Column(DateTime, nullable=False, default=_utc_now_naive)
    metadata_json = Column("metadata", Text, nullable=True)


class SessionContext(Base):
    """A fact (or other context item) recorded for a session."""

    __tablename__ = "session_context"
    __table_args__ = (
        Index("idx_session_context_session_type", "session_id", "context_type"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(128), nullable=False)
    context_type = Column(String(64), nullable=False)
    key = Column(String(255), nullable=False)
    value = Column(Text, nullable=False)
    confidence = Column(Float, nullable=False, default=1.0)
    source_message_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_utc_now_naive)


class ConversationMessage(Base):
    """Message rows owned by the conversation layer; embeddings are JSON text."""

    __tablename__ = "conversation_messages"
    __table_args__ = (
        Index("idx_conversation_messages_session_created", "session_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(128), nullable=False)
    role = Column(String(32), nullable=False, default="user")
    content = Column(Text, nullable=False)
    metadata_json = Column("metadata", Text, nullable=True)
    embedding = Column(Text, nullable=True)
    created_at = Column(DateTime, default=_utc_now_naive)


# =============================================================================
# SQLite Client
# =============================================================================


class SQLiteClient:
    """
    Async SQLite client for conversation context.

    Core operations:
    - upsert_entity / list_entities: entity store with merge semantics
    - add_context / list_context: extracted facts
    - add_message / list_messages / store_embedding: message boundary used by search
    """

    def __init__(self, database_url: str):
        """
        Initialize the SQLite client.

        Args:
            database_url: SQLAlchemy async URL, e.g.
                         "sqlite+aiosqlite:///conversation_context.db"
        """
        self.database_url = database_url
        self.engine = create_async_engine(database_url, echo=False)
        self.async_session = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init_db(self):
        """Create tables if they don't exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        """Close the database connection."""
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self):
        """Get an async session context manager."""
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @staticmethod
    def _require_text(value: Any, name: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{name} must not be empty")
        return value

    # -------------------------------------------------------------------------
    # Entities
    # -------------------------------------------------------------------------

    @staticmethod
    def _entity_to_dict(row: SessionEntity) -> Dict[str, Any]:
        return {
            "id": row.id,
            "session_id": row.session_id,
            "entity_type": row.entity_type,
            "entity_value": row.entity_value,
            "confidence": row.confidence,
            "mention_count": row.mention_count,
            "first_mentioned_at": _isoformat(row.first_mentioned_at),
            "last_mentioned_at": _isoformat(row.last_mentioned_at),
            "metadata": _load_json_object(row.metadata_json),
        }

    async def upsert_entity(
        self,
        session_id: str,
        entity_type: str,
        entity_value: str,
        metadata: Optional[Dict[str, Any]] = None,
        confidence: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Record one mention of an entity.

        A new triple is inserted with mention_count=1. An existing one gets
        mention_count + 1 and a fresh last_mentioned_at; its metadata,
        confidence and first_mentioned_at are left as stored. The insert and
        the increment are one statement, so concurrent calls cannot both
        insert.
        """
        session_value = self._require_text(session_id, "session_id")
        type_value = self._require_text(entity_type, "entity_type")
        entity_text = self._require_text(entity_value, "entity_value")
        metadata_value = json.dumps(metadata or {}, separators=(",", ":"), default=str)
        if confidence is None and metadata:
            confidence = metadata.get("confidence")
        try:
            confidence_value = float(confidence) if confidence is not None else None
        except (TypeError, ValueError) as exc:
            raise ValueError("confidence must be a float value or null") from exc

        async with self.session() as session:
            now_value = _utc_now_naive()
            await session.execute(
                text(
                    "INSERT INTO session_entities("
                    "session_id, entity_type, entity_value, confidence, mention_count, "
                    "first_mentioned_at, last_mentioned_at, metadata"
                    ") VALUES ("
                    ":session_id, :entity_type, :entity_value, :confidence, 1, "
                    ":now, :now, :metadata"
                    ") ON CONFLICT(session_id, entity_type, entity_value) DO UPDATE SET "
                    "mention_count = mention_count + 1, "
                    "last_mentioned_at = MAX(last_mentioned_at, excluded.last_mentioned_at)"
                ),
                {
                    "session_id": session_value,
                    "entity_type": type_value,
                    "entity_value": entity_text,
                    "confidence": confidence_value,
                    "now": now_value,
                    "metadata": metadata_value,
                },
            )
            row = (
                await session.execute(
                    select(SessionEntity)
                    .where(SessionEntity.session_id == session_value)
                    .where(SessionEntity.entity_type == type_value)
                    .where(SessionEntity.entity_value == entity_text)
                    .limit(1)
                )
            ).scalar_one()
            logger.debug(
                f"Upserted {type_value}: {entity_text} (mentions: {row.mention_count})"
            )
            return self._entity_to_dict(row)

    async def list_entities(
        self, session_id: str, entity_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Entities of a session, most mentioned first, then most recently mentioned."""
        query = select(SessionEntity).where(SessionEntity.session_id == session_id)
        if entity_type:
            query = query.where(SessionEntity.entity_type == entity_type)
        query = query.order_by(
            SessionEntity.mention_count.desc(),
            SessionEntity.last_mentioned_at.desc(),
            SessionEntity.id.asc(),
        )
        async with self.session() as session:
            rows = (await session.execute(query)).scalars().all()
            return [self._entity_to_dict(row) for row in rows]

    # -------------------------------------------------------------------------
    # Context (facts)
    # -------------------------------------------------------------------------

    @staticmethod
    def _context_to_dict(row: SessionContext) -> Dict[str, Any]:
        return {
            "id": row.id,
            "session_id": row.session_id,
            "context_type": row.context_type,
            "key": row.key,
            "value": row.value,
            "confidence": row.confidence,
            "source_message_id": row.source_message_id,
            "created_at": _isoformat(row.created_at),
        }

    async def add_context(
        self,
        session_id: str,
        context_type: str,
        key: str,
        value: str,
        confidence: float = 1.0,
        source_message_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Append a context item. Rows are never merged; readers see newest first."""
        row = SessionContext(
            session_id=self._require_text(session_id, "session_id"),
            context_type=self._require_text(context_type, "context_type"),
            key=self._require_text(key, "key"),
            value=str(value),
            confidence=float(confidence),
            source_message_id=source_message_id,
            created_at=_utc_now_naive(),
        )
        async with self.session() as session:
            session.add(row)
            await session.flush()
            logger.debug(f"Added {context_type}: {key} = {value}")
            return self._context_to_dict(row)

    async def list_context(
        self, session_id: str, context_type: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query = select(SessionContext).where(SessionContext.session_id == session_id)
        if context_type:
            query = query.where(SessionContext.context_type == context_type)
        query = query.order_by(SessionContext.created_at.desc(), SessionContext.id.desc())
        async with self.session() as session:
            rows = (await session.execute(query)).scalars().all()
            return [self._context_to_dict(row) for row in rows]

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_embedding(row: ConversationMessage) -> Optional[List[float]]:
        if not row.embedding:
            return None
        try:
            parsed = json.loads(row.embedding)
            if isinstance(parsed, list) and not any(isinstance(v, bool) for v in parsed):
                vector = [float(v) for v in parsed]
                if all(math.isfinite(v) for v in vector):
                    return vector
        except (TypeError, ValueError, OverflowError):
            pass
        logger.warning(f"Failed to parse embedding for message {row.id}")
        return None

    def _message_to_dict(self, row: ConversationMessage) -> Dict[str, Any]:
        return {
            "id": row.id,
            "session_id": row.session_id,
            "role": row.role,
            "content": row.content,
            "metadata": _load_json_object(row.metadata_json),
            "embedding": self._parse_embedding(row),
            "created_at": _isoformat(row.created_at),
        }

    async def add_message(
        self,
        session_id: str,
        role: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        embedding: Optional[List[float]] = None,
    ) -> Dict[str, Any]:
        row = ConversationMessage(
            session_id=self._require_text(session_id, "session_id"),
            role=role or "user",
            content=content or "",
            metadata_json=json.dumps(metadata or {}, separators=(",", ":"), default=str),
            embedding=(
                json.dumps(embedding, separators=(",", ":"), allow_nan=False)
                if embedding is not None
                else None
            ),
            created_at=_utc_now_naive(),
        )
        async with self.session() as session:
            session.add(row)
            await session.flush()
            return self._message_to_dict(row)

    async def list_messages(self, session_id: str) -> List[Dict[str, Any]]:
        """All messages of a session, newest first, with parsed embeddings."""
        query = (
            select(ConversationMessage)
            .where(ConversationMessage.session_id == session_id)
            .order_by(ConversationMessage.created_at.desc(), ConversationMessage.id.desc())
        )
        async with self.session() as session:
            rows = (await session.execute(query)).scalars().all()
            return [self._message_to_dict(row) for row in rows]

    async def store_embedding(self, message_id: int, vector: List[float]) -> None:
        async with self.session() as session:
            row = await session.get(ConversationMessage, int(message_id))
            if row is None:
                raise ValueError(f"message_id={message_id} not found")
            row.embedding = json.dumps(
                [float(v) for v in vector], separators=(",", ":"), allow_nan=False
            )
