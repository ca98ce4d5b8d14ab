from __future__ import annotations

import unittest
from datetime import datetime, timezone

from market_pulse.engine.sync import drop_sports_events, sync_kalshi, sync_polymarket
from market_pulse.models import SourceMarket, TargetEvent


class FakeConnector:
    def __init__(self, markets=None, events=None) -> None:
        self.markets = markets or []
        self.events = events or []

    def fetch_markets(self):
        return list(self.markets)

    def fetch_events(self):
        return list(self.events)


class FakeStore:
    def __init__(self) -> None:
        self.source = {}
        self.target = {}

    def upsert_source_markets(self, markets):
        for m in markets:
            self.source[m.id] = m
        return len(markets)

    def count_source_markets(self):
        return len(self.source)

    def upsert_target_events(self, events):
        for e in events:
            self.target[e.event_ticker] = e
        return len(events)

    def count_target_events(self):
        return len(self.target)


def _event(ticker: str, title: str) -> TargetEvent:
    return TargetEvent(event_ticker=ticker, title=title)


class SyncTests(unittest.TestCase):
    def test_sports_events_are_dropped(self) -> None:
        events = [
            _event("A", "NBA Finals champion"),
            _event("B", "Premier League winner"),
            _event("C", "Who will Trump nominate as Fed Chair?"),
            _event("D", "UFC 300 main event"),
        ]
        self.assertEqual([e.event_ticker for e in drop_sports_events(events)], ["C"])

    def test_sync_kalshi_reports_counts(self) -> None:
        store = FakeStore()
        connector = FakeConnector(events=[_event("A", "NFL MVP"), _event("C", "Fed rate cut in December?")])

        report = sync_kalshi(store, connector)

        self.assertEqual(report.venue, "kalshi")
        self.assertEqual(report.fetched, 2)
        self.assertEqual(report.upserted, 1)
        self.assertEqual(report.total_cached, 1)
        self.assertEqual(list(store.target), ["C"])

    def test_sync_polymarket_reports_counts(self) -> None:
        store = FakeStore()
        now = datetime.now(timezone.utc)
        markets = [SourceMarket(id=str(i), question=f"Q{i}?", updated_at=now) for i in range(3)]

        report = sync_polymarket(store, FakeConnector(markets=markets))

        self.assertEqual((report.fetched, report.upserted, report.total_cached), (3, 3, 3))
        self.assertGreaterEqual(report.duration_ms, 0)


if __name__ == "__main__":
    unittest.main()
