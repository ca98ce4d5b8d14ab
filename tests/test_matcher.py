from __future__ import annotations

import unittest

from market_pulse.clients.llm_match_classifier import (
    ClassifierMalformed,
    ClassifierOk,
    ClassifierUnavailable,
    MatchDecision,
)
from market_pulse.engine.matcher import MatchDecisionEngine, _round_half_up, select_best_market
from market_pulse.models import TargetEvent, TargetMarket


class FakeClassifier:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.calls = []

    def classify(self, question, candidates):
        self.calls.append((question, list(candidates)))
        return self.outcome


def _event(ticker: str, title: str, markets=None) -> TargetEvent:
    return TargetEvent(event_ticker=ticker, title=title, markets=markets or [])


PRES_EVENT = _event(
    "PRES-28",
    "Trump wins 2028 presidential election",
    markets=[
        TargetMarket(ticker="PRES-28-DJT-OLD", status="closed"),
        TargetMarket(ticker="PRES-28-DJT", status="open"),
    ],
)
TARIFF_EVENT = _event("TARIFF-CN", "Trump China tariffs before August")
TARIFF_RATE_EVENT = _event("TARIFF-RATE", "Trump China tariff rate above 25%")


class MatchDecisionEngineTests(unittest.TestCase):
    def test_classifier_match(self) -> None:
        classifier = FakeClassifier(
            ClassifierOk(MatchDecision(event_index=0, confidence=88, reasoning="Same outcome", matched_concepts=["Trump", "2028 election"]))
        )
        engine = MatchDecisionEngine(classifier)

        result = engine.decide("pm-1", "Will Donald Trump win the 2028 election?", [PRES_EVENT])

        self.assertEqual(result.match_method, "ai")
        self.assertEqual(result.target_event_id, "PRES-28")
        self.assertEqual(result.target_market_id, "PRES-28-DJT")
        self.assertEqual(result.target_event_title, "Trump wins 2028 presidential election")
        self.assertEqual(result.confidence, 88)
        self.assertAlmostEqual(result.similarity, 0.88)
        self.assertEqual(result.matched_entities, ["Trump", "2028 election"])
        self.assertEqual(result.reasoning, "Same outcome")
        self.assertEqual(len(classifier.calls), 1)

    def test_classifier_unavailable_falls_back_to_entities(self) -> None:
        engine = MatchDecisionEngine(FakeClassifier(ClassifierUnavailable("connection refused")))

        result = engine.decide("pm-1", "Will Donald Trump win the 2028 election?", [PRES_EVENT])

        self.assertEqual(result.match_method, "entity")
        self.assertEqual(result.target_event_id, "PRES-28")
        self.assertAlmostEqual(result.similarity, 1.0)
        self.assertEqual(result.confidence, 100)
        self.assertEqual(result.matched_entities, ["trump"])
        self.assertEqual(result.reasoning, "Entity-based fallback (AI unavailable or low confidence)")

    def test_strong_entity_match_skips_classifier(self) -> None:
        classifier = FakeClassifier(ClassifierUnavailable("should not be called"))
        engine = MatchDecisionEngine(classifier)

        outcome = engine.evaluate("pm-2", "Will Trump impose tariffs on China before July?", [PRES_EVENT, TARIFF_EVENT])

        self.assertFalse(outcome.used_classifier)
        self.assertEqual(classifier.calls, [])
        result = outcome.result
        self.assertEqual(result.match_method, "entity")
        self.assertEqual(result.target_event_id, "TARIFF-CN")
        self.assertIsNone(result.target_market_id)
        self.assertAlmostEqual(result.similarity, 0.95)
        self.assertEqual(result.confidence, 95)
        self.assertEqual(result.reasoning, "Strong entity match: trump, china, tariff")

    def test_no_entity_overlap(self) -> None:
        classifier = FakeClassifier(ClassifierUnavailable("unused"))
        outcome = MatchDecisionEngine(classifier).evaluate("pm-3", "Will it rain tomorrow?", [PRES_EVENT])

        self.assertFalse(outcome.used_classifier)
        self.assertEqual(outcome.result.match_method, "none")
        self.assertIsNone(outcome.result.target_event_id)
        self.assertEqual(outcome.result.confidence, 0)
        self.assertEqual(outcome.result.similarity, 0.0)
        self.assertEqual(outcome.result.reasoning, "No entity overlap found")

    def test_low_confidence_without_fallback_keeps_classifier_reasoning(self) -> None:
        classifier = FakeClassifier(ClassifierOk(MatchDecision(event_index=0, confidence=10, reasoning="Different resolution")))
        result = MatchDecisionEngine(classifier).decide("pm-4", "Will Trump impose tariffs on China?", [TARIFF_RATE_EVENT])

        self.assertEqual(result.match_method, "none")
        self.assertIsNone(result.target_event_id)
        self.assertEqual(result.reasoning, "Different resolution")

    def test_negative_index_without_reasoning(self) -> None:
        classifier = FakeClassifier(ClassifierOk(MatchDecision(event_index=-1, confidence=0)))
        result = MatchDecisionEngine(classifier).decide("pm-4", "Will Trump impose tariffs on China?", [TARIFF_RATE_EVENT])

        self.assertEqual(result.match_method, "none")
        self.assertEqual(result.reasoning, "No confident match found")

    def test_malformed_reply_is_a_no_match(self) -> None:
        classifier = FakeClassifier(ClassifierMalformed("unparseable JSON: hello"))
        result = MatchDecisionEngine(classifier).decide("pm-4", "Will Trump impose tariffs on China?", [TARIFF_RATE_EVENT])

        self.assertEqual(result.match_method, "none")
        self.assertEqual(result.reasoning, "No confident match found")

    def test_out_of_bounds_index(self) -> None:
        classifier = FakeClassifier(ClassifierOk(MatchDecision(event_index=5, confidence=90, reasoning="x")))
        result = MatchDecisionEngine(classifier).decide("pm-1", "Will Donald Trump win the 2028 election?", [PRES_EVENT])

        self.assertEqual(result.match_method, "none")
        self.assertIsNone(result.target_event_id)
        self.assertEqual(result.reasoning, "AI returned out-of-bounds index")

    def test_ai_match_without_concepts_uses_candidate_entities(self) -> None:
        classifier = FakeClassifier(ClassifierOk(MatchDecision(event_index=0, confidence=70, reasoning="close")))
        result = MatchDecisionEngine(classifier).decide("pm-1", "Will Donald Trump win the 2028 election?", [PRES_EVENT])

        self.assertEqual(result.match_method, "ai")
        self.assertEqual(result.matched_entities, ["trump"])

    def test_at_most_thirty_candidates_reach_the_classifier(self) -> None:
        pool = [_event(f"RACE-{i}", f"Trump wins race {i}") for i in range(35)]
        classifier = FakeClassifier(ClassifierOk(MatchDecision(event_index=-1, confidence=0)))
        MatchDecisionEngine(classifier).decide("pm-1", "Will Donald Trump win the 2028 election?", pool)

        self.assertEqual(len(classifier.calls), 1)
        self.assertEqual(len(classifier.calls[0][1]), 30)

    def test_decisions_are_deterministic(self) -> None:
        engine = MatchDecisionEngine(FakeClassifier(ClassifierUnavailable("down")))
        pool = [PRES_EVENT, TARIFF_EVENT, TARIFF_RATE_EVENT]
        first = engine.decide("pm-1", "Will Donald Trump win the 2028 election?", pool)
        second = engine.decide("pm-1", "Will Donald Trump win the 2028 election?", pool)
        self.assertEqual(first.model_dump(), second.model_dump())

    def test_scores_stay_in_range(self) -> None:
        questions = [
            "Will Donald Trump win the 2028 election?",
            "Will Trump impose tariffs on China before July?",
            "Will Trump impose tariffs on China?",
            "Will it rain tomorrow?",
        ]
        engine = MatchDecisionEngine(FakeClassifier(ClassifierUnavailable("down")))
        for q in questions:
            result = engine.decide("pm", q, [PRES_EVENT, TARIFF_EVENT, TARIFF_RATE_EVENT])
            self.assertGreaterEqual(result.similarity, 0.0)
            self.assertLessEqual(result.similarity, 1.0)
            self.assertGreaterEqual(result.confidence, 0)
            self.assertLessEqual(result.confidence, 100)
            if result.match_method == "none":
                self.assertIsNone(result.target_event_id)
            else:
                self.assertIsNotNone(result.target_event_id)


class EndToEndScenarioTests(unittest.TestCase):
    def test_single_shared_entity_routes_to_classifier(self) -> None:
        pool = [TargetEvent(event_ticker="K1", title="Who will win the 2028 presidential election?", subtitle="Trump vs others")]
        classifier = FakeClassifier(ClassifierOk(MatchDecision(event_index=-1, confidence=0)))
        engine = MatchDecisionEngine(classifier)

        candidates = engine.pre_filter.pre_filter("Will Donald Trump win the 2028 election?", pool)
        self.assertEqual(len(candidates), 1)
        self.assertEqual(candidates[0].matched_entities, ["trump"])
        self.assertTrue(candidates[0].context_compatible)

        outcome = engine.evaluate("pm-1", "Will Donald Trump win the 2028 election?", pool)
        self.assertTrue(outcome.used_classifier)
        self.assertEqual(len(classifier.calls), 1)
        # Classifier declined, entity fallback applies (score 1.0, compatible).
        self.assertEqual(outcome.result.match_method, "entity")
        self.assertEqual(outcome.result.target_event_id, "K1")

    def test_two_shared_entities_use_classifier_answer(self) -> None:
        pool = [_event("KXSHUT", "Trump, the Fed and a government shutdown")]
        classifier = FakeClassifier(
            ClassifierOk(MatchDecision(event_index=0, confidence=90, reasoning="same", matched_concepts=["trump", "fed"]))
        )
        result = MatchDecisionEngine(classifier).decide("pm-5", "Will Trump fire the Fed chair?", pool)

        self.assertEqual(len(classifier.calls), 1)
        self.assertEqual(classifier.calls[0][1][0].matched_entities, ["trump", "fed"])
        self.assertEqual(result.match_method, "ai")
        self.assertAlmostEqual(result.similarity, 0.9)
        self.assertEqual(result.confidence, 90)
        self.assertEqual(result.matched_entities, ["trump", "fed"])


class HelperTests(unittest.TestCase):
    def test_select_best_market(self) -> None:
        markets = [TargetMarket(ticker="A", status="closed"), TargetMarket(ticker="B", status="active")]
        self.assertEqual(select_best_market(markets).ticker, "B")
        self.assertEqual(select_best_market([TargetMarket(ticker="C", status="settled")]).ticker, "C")
        self.assertIsNone(select_best_market([]))

    def test_round_half_up(self) -> None:
        self.assertEqual(_round_half_up(62.5), 63)
        self.assertEqual(_round_half_up(0.5), 1)
        self.assertEqual(_round_half_up(94.49), 94)


if __name__ == "__main__":
    unittest.main()
