from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from market_pulse.clients.http_client import HttpClient
from market_pulse.connectors.base import VenueConnector
from market_pulse.connectors.polymarket import _to_clean_str, _to_float
from market_pulse.models import WhaleTrader

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 300


class WhaleConnector(VenueConnector):
    """Polymarket Data API leaderboard, ordered by volume.

    Results are kept in memory per (time period, limit). A failed refresh
    serves the previous result when there is one, otherwise an empty list.
    """

    source_name = "polymarket_data"

    def __init__(
        self,
        data_api_base_url: str,
        time_period: str = "ALL",
        limit: int = 10,
        cache_ttl_seconds: int = CACHE_TTL_SECONDS,
        timeout: int = 15,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.data_api_base_url = data_api_base_url.rstrip("/")
        self.time_period = time_period
        self.limit = max(1, int(limit))
        self.cache_ttl_seconds = cache_ttl_seconds
        self.http = HttpClient(timeout=timeout)
        self._clock = clock
        self._cache: Dict[Tuple[str, int], Tuple[float, List[WhaleTrader]]] = {}

    def fetch_raw(self) -> List[Dict[str, Any]]:
        return self._fetch_entries(self.time_period, self.limit)

    def _fetch_entries(self, time_period: str, limit: int) -> List[Dict[str, Any]]:
        params = {"timePeriod": time_period, "orderBy": "VOL", "limit": limit}
        payload = self.http.get_json(f"{self.data_api_base_url}/v1/leaderboard", params=params)
        return _extract_entries(payload)

    def fetch_leaderboard(self, time_period: Optional[str] = None, limit: Optional[int] = None) -> List[WhaleTrader]:
        period = time_period or self.time_period
        size = max(1, int(limit or self.limit))
        key = (period, size)

        cached = self._cache.get(key)
        now = self._clock()
        if cached and now - cached[0] < self.cache_ttl_seconds:
            return cached[1]

        try:
            entries = self._fetch_entries(period, size)
        except (requests.RequestException, ValueError) as exc:
            logger.error("Leaderboard fetch failed", extra={"time_period": period, "error": str(exc)})
            return cached[1] if cached else []

        whales = [
            normalize_leaderboard_entry(entry, fallback_rank=position + 1)
            for position, entry in enumerate(entries)
        ]
        self._cache[key] = (now, whales)
        logger.info("Cached %s whale traders for period=%s", len(whales), period)
        return whales

    def get_whale_profile(self, identifier: str) -> Optional[WhaleTrader]:
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        try:
            payload = self.http.get_json(
                f"{self.data_api_base_url}/v1/leaderboard",
                params={"userName": identifier, "limit": 1},
            )
        except (requests.RequestException, ValueError) as exc:
            logger.error("Whale profile fetch failed", extra={"identifier": identifier, "error": str(exc)})
            return None
        entries = _extract_entries(payload)
        if not entries:
            return None
        return normalize_leaderboard_entry(entries[0], fallback_rank=0)


def normalize_leaderboard_entry(entry: Dict[str, Any], fallback_rank: int = 0) -> WhaleTrader:
    """Map a Data API leaderboard row onto ``WhaleTrader``.

    Field precedence (first non-empty value wins):
      rank            ``rank`` parsed as an integer, then ``fallback_rank``
      address         ``proxyWallet``, then ``address``
      username        ``userName``, then ``username``, then ``displayUserName``
      volume          ``vol``, then ``volume``
      pnl             ``pnl``, then ``profit``
      x_username      ``xUserName``, then ``xUsername``
      markets_traded  ``marketsTraded``, then ``markets_traded``
    """
    return WhaleTrader(
        rank=_to_count(entry.get("rank")) or max(0, fallback_rank),
        address=_to_clean_str(entry.get("proxyWallet") or entry.get("address")),
        username=_to_clean_str(entry.get("userName") or entry.get("username") or entry.get("displayUserName")),
        profile_image=_to_clean_str(entry.get("profileImage")),
        volume=_to_float(entry.get("vol") or entry.get("volume")),
        pnl=_to_float(entry.get("pnl") or entry.get("profit")),
        x_username=_to_clean_str(entry.get("xUserName") or entry.get("xUsername")),
        markets_traded=_to_count(entry.get("marketsTraded") or entry.get("markets_traded")),
    )


def _extract_entries(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, list):
        return [x for x in payload if isinstance(x, dict)]
    if not isinstance(payload, dict):
        return []
    for key in ("leaderboard", "data", "traders"):
        value = payload.get(key)
        if isinstance(value, list):
            return [x for x in value if isinstance(x, dict)]
    return []


def _to_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, number)
