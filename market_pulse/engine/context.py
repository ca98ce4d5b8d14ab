from __future__ import annotations

from typing import Optional

from market_pulse.knowledge.vocabulary import EntityVocabulary, default_vocabulary
from market_pulse.models import SemanticContext


class ContextClassifier:
    def __init__(self, vocabulary: Optional[EntityVocabulary] = None):
        self.vocabulary = vocabulary or default_vocabulary()

    def classify(self, text: str) -> SemanticContext:
        lower = (text or "").lower()
        best = SemanticContext.UNKNOWN
        best_count = 0
        for ctx, keywords in self.vocabulary.context_keywords:
            count = sum(1 for kw in keywords if kw in lower)
            # Strictly greater: the first category to reach the max keeps it.
            if count > best_count:
                best = ctx
                best_count = count
        return best

    def compatible(self, a: SemanticContext, b: SemanticContext) -> bool:
        if a is SemanticContext.UNKNOWN or b is SemanticContext.UNKNOWN:
            return True
        if a is b:
            return True
        adjacency = self.vocabulary.context_adjacency
        return b in adjacency.get(a, frozenset()) or a in adjacency.get(b, frozenset())
