"""
Pattern-based fast path for facts users state about themselves.

Rules are declarative: a compiled pattern plus key/value templates written with
regex back-references (expanded through `re.Match.expand`). Every rule is
evaluated on its own, so adding a rule never changes what the others emit.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import Fact


@dataclass(frozen=True)
class FactRule:
    """One pattern and the fact it produces.

    Expanded keys are lower-cased unless `lowercase_key` is False, so
    "My favorite Color is blue" yields `favorite_color`, not `favorite_Color`.
    Values keep the casing found in the text.
    """

    pattern: "re.Pattern[str]"
    key_template: str
    value_template: str
    confidence: float
    lowercase_key: bool = True

    def apply(self, text: str) -> Optional[Fact]:
        match = self.pattern.search(text)
        if match is None:
            return None
        key = match.expand(self.key_template)
        if self.lowercase_key:
            key = key.lower()
        value = match.expand(self.value_template).strip()
        if not key or not value:
            return None
        return Fact(key=key, value=value, confidence=self.confidence)


DEFAULT_FACT_RULES: Sequence[FactRule] = (
    FactRule(
        pattern=re.compile(r"my (?:favorite|fav) (\w+) is ([\w\s]+?)(?:\.|$|,)", re.IGNORECASE),
        key_template=r"favorite_\1",
        value_template=r"\2",
        confidence=0.9,
    ),
    FactRule(
        pattern=re.compile(r"my name is (\w+)", re.IGNORECASE),
        key_template="user_name",
        value_template=r"\1",
        confidence=0.95,
    ),
)


class LexicalFactMatcher:
    """Apply an ordered rule table to text; at most one fact per rule."""

    def __init__(self, rules: Optional[Sequence[FactRule]] = None):
        self.rules: List[FactRule] = list(DEFAULT_FACT_RULES if rules is None else rules)

    def match(self, text: str) -> List[Fact]:
        if not text:
            return []
        facts: List[Fact] = []
        for rule in self.rules:
            fact = rule.apply(text)
            if fact is not None:
                facts.append(fact)
        return facts
