from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from market_pulse.engine.context import ContextClassifier
from market_pulse.engine.entities import EntityExtractor
from market_pulse.models import TargetEvent

logger = logging.getLogger(__name__)


@dataclass
class PreFilterCandidate:
    target_event_id: str
    title: str
    subtitle: str
    entity_score: float
    matched_entities: List[str] = field(default_factory=list)
    context_compatible: bool = True


class CandidatePreFilter:
    def __init__(
        self,
        extractor: Optional[EntityExtractor] = None,
        context: Optional[ContextClassifier] = None,
    ):
        self.extractor = extractor or EntityExtractor()
        self.context = context or ContextClassifier(self.extractor.vocabulary)

    def pre_filter(self, question: str, pool: Sequence[TargetEvent]) -> List[PreFilterCandidate]:
        source_keys = self.extractor.normalized_keys(question)
        if not source_keys:
            return []

        source_context = self.context.classify(question)
        out: List[PreFilterCandidate] = []

        for event in pool:
            subtitle = event.subtitle or ""
            event_text = f"{event.title} {subtitle}"
            event_keys = set(self.extractor.normalized_keys(event_text))
            if not event_keys:
                continue

            matched = [key for key in source_keys if key in event_keys]
            if not matched:
                continue

            score = dice_score(len(matched), len(source_keys), len(event_keys))
            compatible = self.context.compatible(source_context, self.context.classify(event_text))

            # One shared entity is too weak on its own without a compatible context.
            if len(matched) == 1 and not compatible:
                continue

            out.append(
                PreFilterCandidate(
                    target_event_id=event.event_ticker,
                    title=event.title,
                    subtitle=subtitle,
                    entity_score=score,
                    matched_entities=matched,
                    context_compatible=compatible,
                )
            )

        out.sort(key=lambda c: c.entity_score, reverse=True)
        logger.debug("Pre-filter kept %s/%s events | q=%s", len(out), len(pool), question[:120])
        return out


def dice_score(matched: int, source_size: int, candidate_size: int) -> float:
    total = source_size + candidate_size
    if total <= 0:
        return 0.0
    return (2.0 * matched) / total
