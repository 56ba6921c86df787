"""
Client for the remote entity-analysis capability.

`RemoteTextAnalyzer` never raises to its caller. Timeouts, transport errors and
unexpected payloads all collapse into an empty, degraded `EntityAnalysis`.
"""

import math
from typing import Any, Dict, List, Optional, Protocol

import httpx

from config import RemoteServiceConfig
from logging_config import get_logger
from remote_client import build_envelope, new_request_id, post_json

from .models import EntityAnalysis, EntityCandidate

logger = get_logger(__name__)

ENTITY_EXTRACT_ACTION = "entity.extract"
REQUESTED_ENTITY_TYPES = [
    "PERSON",
    "ORGANIZATION",
    "LOCATION",
    "DATE",
    "TIME",
    "PRODUCT",
    "EVENT",
]
DEFAULT_ENTITY_CONFIDENCE = 0.8

ENTITY_TYPE_MAP: Dict[str, str] = {
    "PERSON": "person",
    "ORGANIZATION": "organization",
    "ORG": "organization",
    "LOCATION": "place",
    "LOC": "place",
    "GPE": "place",  # geopolitical entity
    "DATE": "date",
    "TIME": "time",
    "PRODUCT": "product",
    "EVENT": "event",
    "FOOD": "food",
    "WORK_OF_ART": "media",
}


def normalize_entity_type(raw_type: str) -> str:
    """Map a remote entity label onto the local vocabulary."""
    return ENTITY_TYPE_MAP.get(raw_type, raw_type.lower())


class TextAnalyzer(Protocol):
    async def extract_entities(self, text: str) -> List[EntityCandidate]:
        ...


class RemoteTextAnalyzer:
    """Entity extraction over HTTP with a bounded timeout and soft failure."""

    def __init__(
        self,
        config: RemoteServiceConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport

    async def extract_entities(self, text: str) -> List[EntityCandidate]:
        analysis = await self.analyze(text)
        return analysis.entities

    async def analyze(self, text: str) -> EntityAnalysis:
        request_id = new_request_id("ctx")
        body = build_envelope(
            self.config,
            ENTITY_EXTRACT_ACTION,
            request_id,
            {
                "text": text,
                "entityTypes": list(REQUESTED_ENTITY_TYPES),
                "options": {"includeConfidence": True},
            },
        )
        headers = {
            "Authorization": self.config.api_key,
            "X-Service-Name": self.config.caller_name,
            "X-Request-ID": request_id,
        }

        try:
            response = await post_json(
                self.config,
                ENTITY_EXTRACT_ACTION,
                body,
                headers,
                transport=self._transport,
            )
        except httpx.TimeoutException as exc:
            logger.warning(f"Entity extraction timed out (request {request_id}): {exc}")
            return EntityAnalysis(degraded=True, reason="entity_request_timeout")
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, TypeError) as exc:
            logger.warning(f"Entity extraction failed (request {request_id}): {exc}")
            return EntityAnalysis(degraded=True, reason="entity_request_failed")

        raw_entities = self._extract_entities_from_response(response)
        if raw_entities is None:
            logger.warning(f"Entity extraction returned unexpected format (request {request_id})")
            return EntityAnalysis(degraded=True, reason="entity_response_invalid")

        entities = [
            candidate
            for candidate in (self._to_candidate(item) for item in raw_entities)
            if candidate is not None
        ]
        logger.debug(f"Entity extraction returned {len(entities)} entities (request {request_id})")
        return EntityAnalysis(entities=entities)

    @staticmethod
    def _extract_entities_from_response(payload: Any) -> Optional[List[Any]]:
        if not isinstance(payload, dict) or payload.get("status") != "ok":
            return None
        data = payload.get("data")
        if not isinstance(data, dict):
            return None
        entities = data.get("entities")
        if not isinstance(entities, list):
            return None
        return entities

    @staticmethod
    def _to_candidate(item: Any) -> Optional[EntityCandidate]:
        if not isinstance(item, dict):
            return None
        raw_type = item.get("type")
        value = item.get("text") or item.get("value")
        if not isinstance(raw_type, str) or not raw_type.strip():
            return None
        if not isinstance(value, str) or not value.strip():
            return None

        confidence = DEFAULT_ENTITY_CONFIDENCE
        raw_confidence = item.get("confidence")
        if raw_confidence is not None and not isinstance(raw_confidence, bool):
            try:
                confidence = float(raw_confidence)
            except (TypeError, ValueError, OverflowError):
                confidence = DEFAULT_ENTITY_CONFIDENCE
            if not math.isfinite(confidence) or not 0.0 <= confidence <= 1.0:
                confidence = DEFAULT_ENTITY_CONFIDENCE

        return EntityCandidate(
            type=normalize_entity_type(raw_type),
            value=value,
            confidence=confidence,
            start_pos=item.get("start") if isinstance(item.get("start"), int) else None,
            end_pos=item.get("end") if isinstance(item.get("end"), int) else None,
        )
