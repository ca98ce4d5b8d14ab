from __future__ import annotations

from dataclasses import dataclass
from typing import List, Mapping, Optional

from market_pulse.knowledge.vocabulary import EntityVocabulary, default_vocabulary


@dataclass(frozen=True)
class Entity:
    value: str
    category: str
    normalized: str


class EntityExtractor:
    def __init__(self, vocabulary: Optional[EntityVocabulary] = None):
        self.vocabulary = vocabulary or default_vocabulary()

    def extract(self, text: str) -> List[Entity]:
        """Return entities in discovery order, one per canonical key.

        Categories and patterns are scanned in vocabulary order; the first
        surface form seen for a canonical key wins.
        """
        if not text:
            return []

        entities: List[Entity] = []
        seen: set[str] = set()
        for category, patterns in self.vocabulary.entity_patterns:
            for pattern in patterns:
                for match in pattern.finditer(text):
                    value = match.group(1) if pattern.groups and match.group(1) else match.group(0)
                    normalized = normalize_entity(value, self.vocabulary.aliases)
                    if not normalized or normalized in seen:
                        continue
                    seen.add(normalized)
                    entities.append(Entity(value=value, category=category, normalized=normalized))
        return entities

    def normalized_keys(self, text: str) -> List[str]:
        return [e.normalized for e in self.extract(text)]


def normalize_entity(value: str, aliases: Mapping[str, str]) -> str:
    lower = (value or "").lower().strip()
    return aliases.get(lower, lower)
