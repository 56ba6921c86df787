"""
Extraction coordinator: lexical facts, remote entities, inferred facts.

The three phases run strictly in order because inference needs the entities.
Apart from input validation, `extract` always returns a result; remote trouble
downgrades it to `method="fallback"`.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from errors import ValidationError
from logging_config import get_logger

from .analyzer import TextAnalyzer
from .inference import InferredFactDeriver
from .lexical import LexicalFactMatcher
from .models import (
    METHOD_FALLBACK,
    METHOD_FULL,
    EntityAnalysis,
    ExtractionResult,
    Fact,
)

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def merge_facts(*batches: Sequence[Fact]) -> List[Fact]:
    """Concatenate batches and dedupe by key; a later fact replaces an earlier one."""
    merged: Dict[str, Fact] = {}
    for batch in batches:
        for fact in batch:
            merged[fact.key] = fact
    return list(merged.values())


class ExtractionCoordinator:
    def __init__(
        self,
        analyzer: TextAnalyzer,
        matcher: Optional[LexicalFactMatcher] = None,
        deriver: Optional[InferredFactDeriver] = None,
    ):
        self.analyzer = analyzer
        self.matcher = matcher or LexicalFactMatcher()
        self.deriver = deriver or InferredFactDeriver()

    async def _analyze(self, text: str) -> EntityAnalysis:
        analyze = getattr(self.analyzer, "analyze", None)
        if callable(analyze):
            return await analyze(text)
        return EntityAnalysis(entities=list(await self.analyzer.extract_entities(text)))

    async def extract(self, text: str, session_id: str) -> ExtractionResult:
        """
        Extract facts and entity candidates from one message.

        Args:
            text: Raw user text
            session_id: Session the message belongs to

        Returns:
            ExtractionResult; `method` is "fallback" when remote analysis was
            unavailable or an unexpected error occurred.

        Raises:
            ValidationError: if text or session_id is missing
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("text is required")
        if not isinstance(session_id, str) or not session_id.strip():
            raise ValidationError("session_id is required")

        logger.info(f"Extracting context from: {text[:50]!r}")

        try:
            quick_facts = self.matcher.match(text)
            analysis = await self._analyze(text)
            derived_facts = self.deriver.derive(text, analysis.entities)

            facts = merge_facts(quick_facts, derived_facts)
            degrade_reasons = [analysis.reason or "entity_analysis_degraded"] if analysis.degraded else []
            method = METHOD_FALLBACK if analysis.degraded else METHOD_FULL

            logger.info(
                f"Extracted {len(facts)} facts, {len(analysis.entities)} entities "
                f"(method={method})"
            )
            return ExtractionResult(
                facts=facts,
                entities=list(analysis.entities),
                session_id=session_id,
                extracted_at=_utc_now(),
                method=method,
                degrade_reasons=degrade_reasons,
            )
        except Exception:
            logger.exception("Extraction failed, falling back to lexical facts")

        return ExtractionResult(
            facts=merge_facts(self.matcher.match(text)),
            entities=[],
            session_id=session_id,
            extracted_at=_utc_now(),
            method=METHOD_FALLBACK,
            degrade_reasons=["extraction_error"],
        )
