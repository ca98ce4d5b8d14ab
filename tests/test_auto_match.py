from __future__ import annotations

import unittest

from market_pulse.clients.llm_match_classifier import ClassifierUnavailable
from market_pulse.engine.auto_match import auto_match_markets
from market_pulse.engine.matcher import MarketMatchService, MatchDecisionEngine
from market_pulse.models import MatchResult, TargetEvent


class FakeClassifier:
    def __init__(self) -> None:
        self.calls = 0

    def classify(self, question, candidates):
        self.calls += 1
        return ClassifierUnavailable("offline")


class FakeStore:
    def __init__(self, unmatched, pool, fail_ids=()) -> None:
        self.unmatched = unmatched
        self.pool = pool
        self.fail_ids = set(fail_ids)
        self.saved = []
        self.cached = {}
        self.pool_loads = 0

    def list_unmatched_markets(self, limit):
        return self.unmatched[:limit]

    def list_target_events(self, limit=500, category=None):
        self.pool_loads += 1
        return list(self.pool)

    def save_market_match(self, result: MatchResult, ttl_hours: int = 24) -> MatchResult:
        if result.source_market_id in self.fail_ids:
            raise RuntimeError("write failed")
        self.saved.append((result, ttl_hours))
        self.cached[result.source_market_id] = result
        return result

    def get_market_match(self, source_id):
        return self.cached.get(source_id)


POOL = [
    TargetEvent(event_ticker="TARIFF-CN", title="Trump China tariffs before August"),
    TargetEvent(event_ticker="PRES-28", title="Trump wins 2028 presidential election"),
]

UNMATCHED = [
    {"id": "m1", "question": "Will Trump impose tariffs on China before July?"},
    {"id": "m2", "question": "Will Donald Trump win the 2028 election?"},
    {"id": "m3", "question": "Will it rain tomorrow?"},
]


class AutoMatchTests(unittest.TestCase):
    def test_batch_counts_and_throttle(self) -> None:
        store = FakeStore(UNMATCHED, POOL)
        classifier = FakeClassifier()
        sleeps = []

        report = auto_match_markets(store, MatchDecisionEngine(classifier), batch_size=30, sleep=sleeps.append)

        self.assertEqual((report.matched, report.no_match, report.errors), (2, 1, 0))
        self.assertEqual(store.pool_loads, 1)
        # Only m2 needed the classifier.
        self.assertEqual(classifier.calls, 1)
        self.assertEqual(sleeps, [1.5])
        by_id = {r.source_market_id: r for r, _ in store.saved}
        self.assertEqual(by_id["m1"].target_event_id, "TARIFF-CN")
        self.assertEqual(by_id["m2"].target_event_id, "PRES-28")
        self.assertEqual(by_id["m2"].match_method, "entity")
        self.assertIsNone(by_id["m3"].target_event_id)
        self.assertEqual([r.source_market_id for r, _ in store.saved if r.is_match], ["m1", "m2"])
        self.assertTrue(all(ttl == 24 for _, ttl in store.saved))

    def test_item_failure_is_counted_and_batch_continues(self) -> None:
        store = FakeStore(UNMATCHED, POOL, fail_ids={"m1"})
        report = auto_match_markets(store, MatchDecisionEngine(FakeClassifier()), sleep=lambda _: None)

        self.assertEqual((report.matched, report.no_match, report.errors), (1, 1, 1))
        self.assertEqual(report.processed, 3)

    def test_empty_pool_matches_nothing(self) -> None:
        store = FakeStore(UNMATCHED, [])
        classifier = FakeClassifier()
        report = auto_match_markets(store, MatchDecisionEngine(classifier), sleep=lambda _: None)

        self.assertEqual((report.matched, report.no_match, report.errors), (0, 0, 0))
        self.assertEqual(store.saved, [])
        self.assertEqual(classifier.calls, 0)

    def test_nothing_unmatched(self) -> None:
        store = FakeStore([], POOL)
        report = auto_match_markets(store, MatchDecisionEngine(FakeClassifier()), sleep=lambda _: None)
        self.assertEqual(report.processed, 0)
        self.assertEqual(store.pool_loads, 0)

    def test_batch_size_limits_work(self) -> None:
        store = FakeStore(UNMATCHED, POOL)
        report = auto_match_markets(store, MatchDecisionEngine(FakeClassifier()), batch_size=1, sleep=lambda _: None)
        self.assertEqual(report.processed, 1)


class MarketMatchServiceTests(unittest.TestCase):
    def test_read_through_and_force(self) -> None:
        store = FakeStore([], POOL)
        classifier = FakeClassifier()
        service = MarketMatchService(store, MatchDecisionEngine(classifier))

        first, cached = service.get_or_match("m2", "Will Donald Trump win the 2028 election?")
        self.assertFalse(cached)
        self.assertEqual(first.target_event_id, "PRES-28")

        second, cached = service.get_or_match("m2", "Will Donald Trump win the 2028 election?")
        self.assertTrue(cached)
        self.assertEqual(second.model_dump(), first.model_dump())
        self.assertEqual(classifier.calls, 1)

        _, cached = service.get_or_match("m2", "Will Donald Trump win the 2028 election?", force=True)
        self.assertFalse(cached)
        self.assertEqual(classifier.calls, 2)
        self.assertEqual(len(store.saved), 2)


if __name__ == "__main__":
    unittest.main()
