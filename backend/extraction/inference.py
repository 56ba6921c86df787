"""
Composite facts inferred from text and the entities found in it.

A template only yields a fact when one of the extracted entities appears in the
captured span, which keeps guesses out of the stored context.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import EntityCandidate, Fact


@dataclass(frozen=True)
class InferenceTemplate:
    pattern: "re.Pattern[str]"
    key_template: str  # "{type}" is replaced with the matched entity type
    confidence: float
    entity_type: Optional[str] = None

    def find_entity(
        self, span: str, entities: Sequence[EntityCandidate]
    ) -> Optional[EntityCandidate]:
        lowered_span = span.lower()
        for entity in entities:
            if self.entity_type is not None and entity.type != self.entity_type:
                continue
            if entity.value.lower() in lowered_span:
                return entity
        return None


DEFAULT_INFERENCE_TEMPLATES: Sequence[InferenceTemplate] = (
    InferenceTemplate(
        pattern=re.compile(r"I (?:love|like|enjoy|prefer) ([\w\s]+?)(?:\.|$|,)", re.IGNORECASE),
        key_template="likes_{type}",
        confidence=0.85,
    ),
    InferenceTemplate(
        pattern=re.compile(r"I(?:'m| am) from ([\w\s]+?)(?:\.|$|,)", re.IGNORECASE),
        key_template="home_location",
        confidence=0.9,
        entity_type="place",
    ),
)


class InferredFactDeriver:
    def __init__(self, templates: Optional[Sequence[InferenceTemplate]] = None):
        self.templates: List[InferenceTemplate] = list(
            DEFAULT_INFERENCE_TEMPLATES if templates is None else templates
        )

    def derive(self, text: str, entities: Sequence[EntityCandidate]) -> List[Fact]:
        """Return one fact per template whose capture contains a known entity.

        When several entities qualify, the first in `entities` wins.
        """
        if not text or not entities:
            return []
        facts: List[Fact] = []
        for template in self.templates:
            match = template.pattern.search(text)
            if match is None:
                continue
            entity = template.find_entity(match.group(1).strip(), entities)
            if entity is None:
                continue
            facts.append(
                Fact(
                    key=template.key_template.format(type=entity.type),
                    value=entity.value,
                    confidence=template.confidence,
                )
            )
        return facts
