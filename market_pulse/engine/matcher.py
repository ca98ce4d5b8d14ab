from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from market_pulse.clients.llm_match_classifier import (
    MAX_CANDIDATES,
    ClassifierMalformed,
    ClassifierOk,
    ClassifierOutcome,
    ClassifierUnavailable,
)
from market_pulse.engine.prefilter import CandidatePreFilter, PreFilterCandidate
from market_pulse.models import MatchResult, TargetEvent, TargetMarket

logger = logging.getLogger(__name__)

STRONG_ENTITY_MIN_MATCHES = 3
STRONG_SIMILARITY_CAP = 0.95
STRONG_CONFIDENCE_CAP = 95
FALLBACK_MIN_SCORE = 0.4
AI_MIN_CONFIDENCE = 25


class MatchClassifier(Protocol):
    def classify(self, question: str, candidates: Sequence[PreFilterCandidate]) -> ClassifierOutcome:
        ...


@dataclass
class DecisionOutcome:
    result: MatchResult
    used_classifier: bool


class MatchDecisionEngine:
    """Two-stage cross-venue matcher: entity pre-filter, then an LLM tie-breaker.

    A decision is always produced. Classifier failures degrade to the entity
    fallback tier or to an explicit no-match, never to an exception.
    """

    def __init__(
        self,
        classifier: MatchClassifier,
        pre_filter: Optional[CandidatePreFilter] = None,
        max_llm_candidates: int = MAX_CANDIDATES,
    ):
        self.classifier = classifier
        self.pre_filter = pre_filter or CandidatePreFilter()
        self.max_llm_candidates = max(1, min(int(max_llm_candidates), MAX_CANDIDATES))

    def decide(self, source_id: str, question: str, pool: Sequence[TargetEvent]) -> MatchResult:
        return self.evaluate(source_id, question, pool).result

    def evaluate(self, source_id: str, question: str, pool: Sequence[TargetEvent]) -> DecisionOutcome:
        candidates = self.pre_filter.pre_filter(question, pool)
        by_id = {event.event_ticker: event for event in pool}

        def build(
            candidate: Optional[PreFilterCandidate],
            method: str,
            similarity: float,
            confidence: int,
            entities: List[str],
            reasoning: str,
        ) -> MatchResult:
            event = by_id.get(candidate.target_event_id) if candidate else None
            market = select_best_market(event.markets) if event else None
            return MatchResult(
                source_market_id=source_id,
                source_question=question,
                target_event_id=candidate.target_event_id if candidate else None,
                target_market_id=market.ticker if market else None,
                target_event_title=candidate.title if candidate else None,
                similarity=similarity,
                confidence=confidence,
                match_method=method,
                matched_entities=entities,
                reasoning=reasoning,
            )

        if not candidates:
            return DecisionOutcome(build(None, "none", 0.0, 0, [], "No entity overlap found"), False)

        top = candidates[0]
        if len(top.matched_entities) >= STRONG_ENTITY_MIN_MATCHES and top.context_compatible:
            result = build(
                top,
                "entity",
                min(top.entity_score * 1.5, STRONG_SIMILARITY_CAP),
                _round_half_up(min(top.entity_score * 150, STRONG_CONFIDENCE_CAP)),
                list(top.matched_entities),
                f"Strong entity match: {', '.join(top.matched_entities)}",
            )
            return DecisionOutcome(result, False)

        sent = candidates[: self.max_llm_candidates]
        outcome = self.classifier.classify(question, sent)
        _log_outcome(source_id, outcome)

        decision = outcome.decision if isinstance(outcome, ClassifierOk) else None
        if decision is None or decision.event_index < 0 or decision.confidence < AI_MIN_CONFIDENCE:
            if top.entity_score >= FALLBACK_MIN_SCORE and top.context_compatible:
                result = build(
                    top,
                    "entity",
                    top.entity_score,
                    _round_half_up(top.entity_score * 100),
                    list(top.matched_entities),
                    "Entity-based fallback (AI unavailable or low confidence)",
                )
            else:
                reasoning = (decision.reasoning if decision else "") or "No confident match found"
                result = build(None, "none", 0.0, 0, [], reasoning)
            return DecisionOutcome(result, True)

        if decision.event_index >= len(sent):
            return DecisionOutcome(build(None, "none", 0.0, 0, [], "AI returned out-of-bounds index"), True)

        chosen = sent[decision.event_index]
        result = build(
            chosen,
            "ai",
            decision.confidence / 100.0,
            decision.confidence,
            list(decision.matched_concepts) or list(chosen.matched_entities),
            decision.reasoning,
        )
        return DecisionOutcome(result, True)


class MarketMatchService:
    """Read-through access to the match cache for a single source market."""

    def __init__(self, store, engine: MatchDecisionEngine, ttl_hours: int = 24, pool_limit: int = 500):
        self.store = store
        self.engine = engine
        self.ttl_hours = ttl_hours
        self.pool_limit = pool_limit

    def get_or_match(self, source_id: str, question: str, force: bool = False) -> Tuple[MatchResult, bool]:
        if not force:
            cached = self.store.get_market_match(source_id)
            if cached is not None:
                return cached, True

        pool = self.store.list_target_events(limit=self.pool_limit)
        result = self.engine.decide(source_id, question, pool)
        saved = self.store.save_market_match(result, ttl_hours=self.ttl_hours)
        logger.info(
            "Matched on demand: %s -> %s (%s, conf=%s)",
            source_id,
            saved.target_event_id or "-",
            saved.match_method,
            saved.confidence,
        )
        return saved, False


def select_best_market(markets: Sequence[TargetMarket]) -> Optional[TargetMarket]:
    if not markets:
        return None
    for market in markets:
        if (market.status or "").lower() in {"open", "active"}:
            return market
    return markets[0]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _log_outcome(source_id: str, outcome: ClassifierOutcome) -> None:
    if isinstance(outcome, ClassifierUnavailable):
        logger.info("Classifier unavailable, using entity tiers", extra={"market_id": source_id, "detail": outcome.detail})
    elif isinstance(outcome, ClassifierMalformed):
        logger.warning("Classifier reply malformed", extra={"market_id": source_id, "detail": outcome.detail})

