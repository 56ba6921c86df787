from .analyzer import RemoteTextAnalyzer, TextAnalyzer, normalize_entity_type
from .coordinator import ExtractionCoordinator, merge_facts
from .inference import InferenceTemplate, InferredFactDeriver
from .lexical import FactRule, LexicalFactMatcher
from .models import (
    METHOD_FALLBACK,
    METHOD_FULL,
    EntityAnalysis,
    EntityCandidate,
    ExtractionResult,
    Fact,
)

__all__ = [
    "METHOD_FALLBACK",
    "METHOD_FULL",
    "EntityAnalysis",
    "EntityCandidate",
    "ExtractionCoordinator",
    "ExtractionResult",
    "Fact",
    "FactRule",
    "InferenceTemplate",
    "InferredFactDeriver",
    "LexicalFactMatcher",
    "RemoteTextAnalyzer",
    "TextAnalyzer",
    "merge_facts",
    "normalize_entity_type",
]
