from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from market_pulse.clients.http_client import HttpClient
from market_pulse.connectors.base import VenueConnector
from market_pulse.models import TargetEvent, TargetMarket

logger = logging.getLogger(__name__)

PAGE_SIZE = 200


class KalshiConnector(VenueConnector):
    source_name = "kalshi"

    def __init__(self, base_url: str, limit: int = 200, status: str = "open", timeout: int = 15):
        self.base_url = base_url.rstrip("/")
        self.limit = max(1, int(limit))
        self.status = status
        self.http = HttpClient(timeout=timeout)

    def fetch_raw(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        cursor: Optional[str] = None

        while len(rows) < self.limit:
            params: Dict[str, Any] = {
                "limit": min(PAGE_SIZE, self.limit - len(rows)),
                "status": self.status,
                "with_nested_markets": "true",
            }
            if cursor:
                params["cursor"] = cursor

            payload = self.http.get_json(f"{self.base_url}/events", params=params)
            events = payload.get("events") if isinstance(payload, dict) else None
            if not isinstance(events, list) or not events:
                break

            rows.extend(x for x in events if isinstance(x, dict))
            cursor = payload.get("cursor") or None
            if not cursor:
                break

        return rows[: self.limit]

    def fetch_events(self) -> List[TargetEvent]:
        fetched_at = datetime.now(timezone.utc)
        events: List[TargetEvent] = []
        seen: set[str] = set()
        for row in self.fetch_raw():
            try:
                event = normalize_kalshi_event(row, fetched_at=fetched_at)
            except Exception as exc:
                logger.debug("Failed to parse Kalshi event", extra={"error": str(exc)})
                continue
            if event is None or event.event_ticker in seen:
                continue
            seen.add(event.event_ticker)
            events.append(event)
        return events


def normalize_kalshi_event(row: Dict[str, Any], fetched_at: Optional[datetime] = None) -> Optional[TargetEvent]:
    """Map a ``/events`` row (with nested markets) onto ``TargetEvent``.

    ``event_ticker`` and ``title`` are required. Nested markets inherit the
    event ticker when they omit it; unparseable markets are dropped.
    """
    if not isinstance(row, dict):
        return None
    event_ticker = _to_clean_str(row.get("event_ticker"))
    title = _to_clean_str(row.get("title"))
    if not event_ticker or not title:
        return None

    markets: List[TargetMarket] = []
    raw_markets = row.get("markets")
    if isinstance(raw_markets, list):
        for raw in raw_markets:
            market = normalize_kalshi_market(raw, event_ticker=event_ticker)
            if market is not None:
                markets.append(market)

    return TargetEvent(
        event_ticker=event_ticker,
        series_ticker=_to_clean_str(row.get("series_ticker")),
        title=title,
        subtitle=_to_clean_str(row.get("sub_title") or row.get("subtitle")),
        category=_to_clean_str(row.get("category")),
        mutually_exclusive=bool(row.get("mutually_exclusive")),
        markets=markets,
        updated_at=fetched_at,
    )


def normalize_kalshi_market(row: Any, event_ticker: str = "") -> Optional[TargetMarket]:
    """Map a Kalshi market row onto ``TargetMarket``.

    Prices are probabilities in [0, 1]: ``*_dollars`` fields win, otherwise
    the cent-denominated field is divided by 100.
    """
    if not isinstance(row, dict):
        return None
    ticker = _to_clean_str(row.get("ticker"))
    if not ticker:
        return None

    return TargetMarket(
        ticker=ticker,
        event_ticker=_to_clean_str(row.get("event_ticker")) or event_ticker,
        title=_to_clean_str(row.get("title")),
        subtitle=_to_clean_str(row.get("subtitle") or row.get("yes_sub_title")),
        status=_to_clean_str(row.get("status")) or "open",
        yes_bid=_price(row, "yes_bid"),
        yes_ask=_price(row, "yes_ask"),
        no_bid=_price(row, "no_bid"),
        no_ask=_price(row, "no_ask"),
        last_price=_price(row, "last_price"),
        volume=_to_float(row.get("volume")),
        volume_24h=_to_float(row.get("volume_24h")),
        open_interest=_to_float(row.get("open_interest")),
        close_time=_parse_dt_or_none(row.get("close_time")),
        rules_primary=_to_clean_str(row.get("rules_primary")),
    )


def _price(row: Dict[str, Any], key: str) -> float:
    dollars = row.get(f"{key}_dollars")
    if dollars is not None:
        value = _to_float(dollars)
        return max(0.0, min(1.0, value))
    cents = _to_float(row.get(key))
    if cents <= 0:
        return 0.0
    return max(0.0, min(1.0, cents / 100.0))


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _parse_dt_or_none(raw: Any) -> Optional[datetime]:
    if isinstance(raw, str) and raw:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            return None
    return None
