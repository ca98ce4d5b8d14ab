from __future__ import annotations

import unittest
from datetime import datetime, timezone

from market_pulse.connectors.kalshi import KalshiConnector, normalize_kalshi_event, normalize_kalshi_market


class FakeHttp:
    def __init__(self, pages) -> None:
        self.pages = pages
        self.calls = []

    def get_json(self, url: str, params=None, headers=None):
        params = dict(params or {})
        self.calls.append({"url": url, **params})
        return self.pages.get(params.get("cursor"), {"events": [], "cursor": ""})


def _event_row(event_ticker: str, title: str, markets=None) -> dict:
    return {
        "event_ticker": event_ticker,
        "series_ticker": event_ticker.split("-")[0],
        "title": title,
        "sub_title": "During Trump's term",
        "category": "Politics",
        "mutually_exclusive": True,
        "markets": markets or [],
    }


class KalshiConnectorTests(unittest.TestCase):
    def test_fetch_events_follows_cursor(self) -> None:
        connector = KalshiConnector(base_url="https://api.elections.kalshi.com/trade-api/v2", limit=200, timeout=1)
        fake = FakeHttp(
            {
                None: {
                    "events": [_event_row("KXFEDCHAIRNOM-29", "Who will Trump nominate as Fed Chair?")],
                    "cursor": "page-2",
                },
                "page-2": {
                    "events": [
                        _event_row("KXPRES-28", "Who will win the 2028 presidential election?"),
                        _event_row("KXFEDCHAIRNOM-29", "duplicate"),
                    ],
                    "cursor": "",
                },
            }
        )
        connector.http = fake

        events = connector.fetch_events()

        self.assertEqual([e.event_ticker for e in events], ["KXFEDCHAIRNOM-29", "KXPRES-28"])
        self.assertEqual(len(fake.calls), 2)
        first, second = fake.calls
        self.assertEqual(first["url"], "https://api.elections.kalshi.com/trade-api/v2/events")
        self.assertEqual(first["status"], "open")
        self.assertEqual(first["with_nested_markets"], "true")
        self.assertNotIn("cursor", first)
        self.assertEqual(second["cursor"], "page-2")

    def test_fetch_stops_at_limit(self) -> None:
        connector = KalshiConnector(base_url="https://api.elections.kalshi.com/trade-api/v2", limit=1, timeout=1)
        fake = FakeHttp(
            {
                None: {
                    "events": [_event_row("A-1", "First"), _event_row("B-1", "Second")],
                    "cursor": "more",
                }
            }
        )
        connector.http = fake

        events = connector.fetch_events()

        self.assertEqual([e.event_ticker for e in events], ["A-1"])
        self.assertEqual(fake.calls[0]["limit"], 1)
        self.assertEqual(len(fake.calls), 1)

    def test_normalize_event_with_markets(self) -> None:
        fetched_at = datetime(2026, 10, 18, tzinfo=timezone.utc)
        row = _event_row(
            "KXFEDCHAIRNOM-29",
            "Who will Trump nominate as Fed Chair?",
            markets=[
                {
                    "ticker": "KXFEDCHAIRNOM-29-KW",
                    "title": "Kevin Warsh",
                    "yes_bid": 94,
                    "yes_ask": 95,
                    "no_bid": 5,
                    "no_ask": 6,
                    "last_price": 94,
                    "volume": 1000,
                    "volume_24h": 120,
                    "open_interest": 800,
                    "status": "active",
                    "close_time": "2029-01-20T15:00:00Z",
                    "rules_primary": "Resolves Yes if Kevin Warsh is nominated.",
                },
                {"ticker": "", "title": "dropped"},
            ],
        )
        event = normalize_kalshi_event(row, fetched_at=fetched_at)

        self.assertEqual(event.series_ticker, "KXFEDCHAIRNOM")
        self.assertEqual(event.subtitle, "During Trump's term")
        self.assertTrue(event.mutually_exclusive)
        self.assertEqual(event.updated_at, fetched_at)
        self.assertEqual(len(event.markets), 1)
        market = event.markets[0]
        self.assertEqual(market.event_ticker, "KXFEDCHAIRNOM-29")
        self.assertAlmostEqual(market.yes_bid, 0.94)
        self.assertAlmostEqual(market.no_ask, 0.06)
        self.assertEqual(market.status, "active")
        self.assertEqual(market.close_time, datetime(2029, 1, 20, 15, tzinfo=timezone.utc))

    def test_dollar_prices_take_precedence(self) -> None:
        market = normalize_kalshi_market({"ticker": "T", "yes_bid": 40, "yes_bid_dollars": "0.4100"})
        self.assertAlmostEqual(market.yes_bid, 0.41)
        self.assertEqual(market.status, "open")

    def test_invalid_rows(self) -> None:
        self.assertIsNone(normalize_kalshi_event({"title": "no ticker"}))
        self.assertIsNone(normalize_kalshi_event({"event_ticker": "X"}))
        self.assertIsNone(normalize_kalshi_market(None))


if __name__ == "__main__":
    unittest.main()
