"""
Configuration for the context extraction and retrieval services.

Values come from the environment (a `.env` file is picked up from the working
directory). Resolved values are carried in frozen dataclasses and injected
into the service objects at construction time.
"""

import os
from dataclasses import dataclass
from typing import List

from dotenv import find_dotenv, load_dotenv

_dotenv_path = find_dotenv(usecwd=True)
if _dotenv_path:
    load_dotenv(_dotenv_path)


DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///conversation_context.db"
DEFAULT_REMOTE_ENDPOINT = "http://localhost:3003"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def _first_env(names: List[str], default: str = "") -> str:
    for name in names:
        value = os.getenv(name)
        if value is None:
            continue
        candidate = value.strip()
        if candidate:
            return candidate
    return default


@dataclass(frozen=True)
class RemoteServiceConfig:
    """Endpoint, credential and timeout for one remote text capability."""

    endpoint: str
    api_key: str
    timeout_sec: float
    service_name: str = "phi4"
    caller_name: str = "conversation-service"


@dataclass(frozen=True)
class RetrievalConfig:
    """Defaults applied by semantic search when the caller omits them."""

    limit: int = 5
    min_similarity: float = 0.5
    include_recent: int = 3


@dataclass(frozen=True)
class AppConfig:
    database_url: str
    log_level: str
    text_analysis: RemoteServiceConfig
    embedding: RemoteServiceConfig
    retrieval: RetrievalConfig


def load_config() -> AppConfig:
    """Load configuration from environment variables with defaults."""
    service_name = _first_env(["REMOTE_SERVICE_NAME"], default="phi4")
    caller_name = _first_env(["CALLER_SERVICE_NAME"], default="conversation-service")

    text_analysis = RemoteServiceConfig(
        endpoint=_first_env(
            ["TEXT_ANALYSIS_ENDPOINT", "PHI4_ENDPOINT"], default=DEFAULT_REMOTE_ENDPOINT
        ),
        api_key=_first_env(["TEXT_ANALYSIS_API_KEY", "PHI4_API_KEY"]),
        timeout_sec=max(0.1, _env_float("TEXT_ANALYSIS_TIMEOUT_SEC", 5.0)),
        service_name=service_name,
        caller_name=caller_name,
    )
    embedding = RemoteServiceConfig(
        endpoint=_first_env(
            ["EMBEDDING_ENDPOINT", "PHI4_ENDPOINT"], default=DEFAULT_REMOTE_ENDPOINT
        ),
        api_key=_first_env(["EMBEDDING_API_KEY", "PHI4_API_KEY"]),
        timeout_sec=max(0.1, _env_float("EMBEDDING_TIMEOUT_SEC", 10.0)),
        service_name=service_name,
        caller_name=caller_name,
    )
    retrieval = RetrievalConfig(
        limit=max(1, _env_int("SEMANTIC_SEARCH_LIMIT", 5)),
        min_similarity=_env_float("SEMANTIC_SEARCH_MIN_SIMILARITY", 0.5),
        include_recent=max(0, _env_int("SEMANTIC_SEARCH_INCLUDE_RECENT", 3)),
    )

    return AppConfig(
        database_url=_first_env(["DATABASE_URL"], default=DEFAULT_DATABASE_URL),
        log_level=_first_env(["LOG_LEVEL"], default="INFO"),
        text_analysis=text_analysis,
        embedding=embedding,
        retrieval=retrieval,
    )
