"""
Transient records produced by a single extraction call.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

METHOD_FULL = "full"
METHOD_FALLBACK = "fallback"


@dataclass(frozen=True)
class Fact:
    """A key/value assertion extracted from text."""

    key: str
    value: str
    confidence: float
    source_message_id: Optional[int] = None


@dataclass(frozen=True)
class EntityCandidate:
    """A named thing reported by remote analysis, before it is persisted."""

    type: str
    value: str
    confidence: float = 0.8
    start_pos: Optional[int] = None
    end_pos: Optional[int] = None


@dataclass
class EntityAnalysis:
    entities: List[EntityCandidate] = field(default_factory=list)
    degraded: bool = False
    reason: Optional[str] = None


@dataclass
class ExtractionResult:
    facts: List[Fact]
    entities: List[EntityCandidate]
    session_id: str
    extracted_at: datetime
    method: str = METHOD_FULL
    degrade_reasons: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.method == METHOD_FALLBACK
