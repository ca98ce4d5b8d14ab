from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Sequence

from market_pulse.connectors.kalshi import KalshiConnector
from market_pulse.connectors.polymarket import PolymarketConnector
from market_pulse.models import TargetEvent

logger = logging.getLogger(__name__)

SPORTS_KEYWORDS = ("nba", "nfl", "mlb", "nhl", "ufc", "premier league", "la liga")


@dataclass
class SyncReport:
    venue: str
    fetched: int = 0
    upserted: int = 0
    total_cached: int = 0
    duration_ms: int = 0


def sync_polymarket(store, connector: PolymarketConnector) -> SyncReport:
    start = time.monotonic()
    markets = connector.fetch_markets()
    upserted = store.upsert_source_markets(markets)
    report = SyncReport(
        venue="polymarket",
        fetched=len(markets),
        upserted=upserted,
        total_cached=store.count_source_markets(),
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    logger.info(
        "Polymarket sync: fetched=%s upserted=%s total=%s duration_ms=%s",
        report.fetched,
        report.upserted,
        report.total_cached,
        report.duration_ms,
    )
    return report


def sync_kalshi(store, connector: KalshiConnector) -> SyncReport:
    start = time.monotonic()
    events = connector.fetch_events()
    kept = drop_sports_events(events)
    upserted = store.upsert_target_events(kept)
    report = SyncReport(
        venue="kalshi",
        fetched=len(events),
        upserted=upserted,
        total_cached=store.count_target_events(),
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    logger.info(
        "Kalshi sync: fetched=%s kept=%s upserted=%s total=%s duration_ms=%s",
        report.fetched,
        len(kept),
        report.upserted,
        report.total_cached,
        report.duration_ms,
    )
    return report


def drop_sports_events(events: Sequence[TargetEvent]) -> List[TargetEvent]:
    out: List[TargetEvent] = []
    for event in events:
        title = (event.title or "").lower()
        if any(kw in title for kw in SPORTS_KEYWORDS):
            continue
        out.append(event)
    return out
