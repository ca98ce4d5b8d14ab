from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from market_pulse.clients.http_client import HttpClient
from market_pulse.connectors.base import VenueConnector
from market_pulse.models import SourceMarket

logger = logging.getLogger(__name__)


class PolymarketConnector(VenueConnector):
    source_name = "polymarket"

    def __init__(self, gamma_base_url: str, limit: int = 300, builder_api_key: str = "", timeout: int = 15):
        self.gamma_base_url = gamma_base_url.rstrip("/")
        self.limit = max(1, int(limit))
        headers = {"X-Builder-Api-Key": builder_api_key} if builder_api_key else None
        self.http = HttpClient(timeout=timeout, headers=headers)

    def fetch_raw(self) -> List[Dict[str, Any]]:
        params = {
            "limit": self.limit,
            "active": "true",
            "closed": "false",
            "archived": "false",
            "order": "volume",
            "ascending": "false",
        }
        payload = self.http.get_json(f"{self.gamma_base_url}/markets", params=params)
        return _extract_market_rows(payload)

    def fetch_markets(self) -> List[SourceMarket]:
        fetched_at = datetime.now(timezone.utc)
        markets: List[SourceMarket] = []
        seen_ids: set[str] = set()
        for row in self.fetch_raw():
            try:
                market = normalize_polymarket_market(row, fetched_at=fetched_at)
            except Exception as exc:
                logger.debug("Failed to parse Polymarket market", extra={"error": str(exc)})
                continue
            if market is None or market.id in seen_ids:
                continue
            seen_ids.add(market.id)
            markets.append(market)
        return markets


def normalize_polymarket_market(row: Dict[str, Any], fetched_at: Optional[datetime] = None) -> Optional[SourceMarket]:
    """Map a Gamma ``/markets`` row onto ``SourceMarket``.

    Field precedence:
      id            ``id``, then ``conditionId``, then ``slug``
      question      ``question``, then the first nested event's ``title``
      category      ``category``, then the first nested event's ``category``
      volume        ``volumeNum``, then ``volume`` (string in the API)
      liquidity     ``liquidityNum``, then ``liquidity``
      outcomes      JSON-encoded string or list; defaults to Yes/No
      updated_at    ``updatedAt``, then the fetch time

    Rows without an id or a question are dropped (``None``).
    """
    if not isinstance(row, dict):
        return None

    event = _primary_event(row)
    market_id = _to_clean_str(row.get("id") or row.get("conditionId") or row.get("slug"))
    question = _to_clean_str(row.get("question") or event.get("title"))
    if not market_id or not question:
        return None

    outcomes = [str(x) for x in _parse_json_list(row.get("outcomes"))] or ["Yes", "No"]
    prices = [_to_float(x) for x in _parse_json_list(row.get("outcomePrices"))]
    if len(prices) != len(outcomes):
        prices = [0.5] * len(outcomes) if len(outcomes) == 2 else [0.0] * len(outcomes)

    active = _to_bool(row.get("active"))
    closed = _to_bool(row.get("closed"))

    return SourceMarket(
        id=market_id,
        question=question,
        condition_id=_to_clean_str(row.get("conditionId")),
        slug=_to_clean_str(row.get("slug")),
        description=_to_clean_str(row.get("description")),
        category=_to_clean_str(row.get("category") or event.get("category")),
        end_date=_parse_dt_or_none(row.get("endDate") or event.get("endDate")),
        outcomes=outcomes,
        outcome_prices=prices,
        volume=_to_float(row.get("volumeNum") or row.get("volume")),
        volume_24hr=_to_float(row.get("volume24hr")),
        volume_1wk=_to_float(row.get("volume1wk")),
        liquidity=_to_float(row.get("liquidityNum") or row.get("liquidity")),
        active=True if active is None else active,
        closed=False if closed is None else closed,
        best_bid=_to_float(row.get("bestBid")),
        best_ask=_to_float(row.get("bestAsk")),
        last_trade_price=_to_float(row.get("lastTradePrice")),
        updated_at=_parse_dt_or_none(row.get("updatedAt")) or fetched_at or datetime.now(timezone.utc),
    )


def _extract_market_rows(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return [x for x in payload if isinstance(x, dict)]
    if not isinstance(payload, dict):
        return []
    for key in ("markets", "data", "items", "results"):
        value = payload.get(key)
        if isinstance(value, list):
            return [x for x in value if isinstance(x, dict)]
    return []


def _parse_json_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
            return parsed if isinstance(parsed, list) else []
        except json.JSONDecodeError:
            return []
    return []


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _to_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        cleaned = value.strip().lower()
        if cleaned in {"true", "1", "yes", "y"}:
            return True
        if cleaned in {"false", "0", "no", "n", ""}:
            return False
    return None


def _primary_event(market: Dict[str, Any]) -> Dict[str, Any]:
    raw_events = market.get("events")
    if isinstance(raw_events, list):
        for event in raw_events:
            if isinstance(event, dict):
                return event
    if isinstance(raw_events, dict):
        return raw_events
    return {}


def _parse_dt_or_none(raw: Any) -> Optional[datetime]:
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if isinstance(raw, str) and raw:
        cleaned = raw.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(cleaned)
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except ValueError:
            return None
    return None
