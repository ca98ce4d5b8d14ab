from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection

from market_pulse.models import MarketGeocode, MarketSummary, MatchResult, SourceMarket, TargetEvent

logger = logging.getLogger(__name__)


class MongoStore:
    """Local cache of both venues plus the derived match/summary/geocode records.

    Datetimes are written as naive UTC (the driver's convention) and returned
    as tz-aware UTC.
    """

    def __init__(self, uri: str, db_name: str, client: Optional[Any] = None):
        self.client = client if client is not None else MongoClient(uri, tz_aware=True)
        self.db = self.client[db_name]
        self.source_markets_col: Collection = self.db["source_markets"]
        self.target_events_col: Collection = self.db["target_events"]
        self.matches_col: Collection = self.db["market_matches"]
        self.summaries_col: Collection = self.db["market_summaries"]
        self.geocodes_col: Collection = self.db["market_geocodes"]
        self._ensure_indexes()

    def _ensure_indexes(self) -> None:
        self.source_markets_col.create_index([("id", ASCENDING)], unique=True)
        self.source_markets_col.create_index([("active", ASCENDING), ("closed", ASCENDING), ("volume_24hr", DESCENDING)])

        self.target_events_col.create_index([("event_ticker", ASCENDING)], unique=True)
        self.target_events_col.create_index([("updated_at", DESCENDING)])

        self.matches_col.create_index([("source_market_id", ASCENDING)], unique=True)
        self.matches_col.create_index([("confidence", DESCENDING)])
        # Housekeeping only; reads still filter on expires_at.
        self.matches_col.create_index("expires_at", expireAfterSeconds=0)

        self.summaries_col.create_index([("market_id", ASCENDING)], unique=True)
        self.summaries_col.create_index("expires_at", expireAfterSeconds=0)

        self.geocodes_col.create_index([("market_id", ASCENDING)], unique=True)
        self.geocodes_col.create_index("expires_at", expireAfterSeconds=0)

    # Source venue

    def upsert_source_markets(self, markets: Iterable[SourceMarket]) -> int:
        count = 0
        for market in markets:
            doc = _to_storage(market.model_dump())
            self.source_markets_col.update_one({"id": market.id}, {"$set": doc}, upsert=True)
            count += 1
        return count

    def get_source_market(self, market_id: str) -> Optional[SourceMarket]:
        doc = self.source_markets_col.find_one({"id": market_id})
        if not doc:
            return None
        return SourceMarket(**_from_storage(doc))

    def count_source_markets(self) -> int:
        return self.source_markets_col.count_documents({})

    def list_unmatched_markets(self, limit: int) -> List[Dict[str, str]]:
        live_ids = self.matches_col.distinct("source_market_id", {"expires_at": {"$gt": _now_naive()}})
        cursor = (
            self.source_markets_col.find(
                {"active": True, "closed": False, "id": {"$nin": live_ids}},
                {"id": 1, "question": 1},
            )
            .sort("volume_24hr", DESCENDING)
            .limit(max(1, int(limit)))
        )
        return [{"id": doc["id"], "question": doc.get("question", "")} for doc in cursor]

    # Target venue

    def upsert_target_events(self, events: Iterable[TargetEvent]) -> int:
        count = 0
        now = _now_naive()
        for event in events:
            doc = _to_storage(event.model_dump())
            if doc.get("updated_at") is None:
                doc["updated_at"] = now
            self.target_events_col.update_one({"event_ticker": event.event_ticker}, {"$set": doc}, upsert=True)
            count += 1
        return count

    def list_target_events(self, limit: int = 500, category: Optional[str] = None) -> List[TargetEvent]:
        query: Dict[str, Any] = {}
        if category:
            query["category"] = category
        cursor = self.target_events_col.find(query).sort("updated_at", DESCENDING).limit(max(1, int(limit)))
        events: List[TargetEvent] = []
        for doc in cursor:
            try:
                events.append(TargetEvent(**_from_storage(doc)))
            except Exception as exc:
                logger.debug("Skipping malformed target event row", extra={"error": str(exc)})
        return events

    def count_target_events(self) -> int:
        return self.target_events_col.count_documents({})

    # Match cache

    def get_market_match(self, source_id: str) -> Optional[MatchResult]:
        doc = self.matches_col.find_one({"source_market_id": source_id, "expires_at": {"$gt": _now_naive()}})
        if not doc:
            return None
        return MatchResult(**_from_storage(doc))

    def save_market_match(self, result: MatchResult, ttl_hours: int = 24) -> MatchResult:
        now = datetime.now(timezone.utc)
        stored = result.model_copy(update={"matched_at": now, "expires_at": now + timedelta(hours=ttl_hours)})
        # Whole-record replacement: at most one row per source market.
        self.matches_col.delete_many({"source_market_id": stored.source_market_id})
        self.matches_col.insert_one(_to_storage(stored.model_dump()))
        return stored

    def list_market_matches(self, limit: int = 50, min_confidence: int = 0) -> List[MatchResult]:
        cursor = (
            self.matches_col.find(
                {
                    "expires_at": {"$gt": _now_naive()},
                    "target_event_id": {"$ne": None},
                    "confidence": {"$gte": int(min_confidence)},
                }
            )
            .sort("confidence", DESCENDING)
            .limit(max(1, int(limit)))
        )
        return [MatchResult(**_from_storage(doc)) for doc in cursor]

    def count_market_matches(self) -> int:
        return self.matches_col.count_documents({"expires_at": {"$gt": _now_naive()}, "target_event_id": {"$ne": None}})

    # Summaries

    def save_summary(self, summary: MarketSummary) -> None:
        self.summaries_col.update_one(
            {"market_id": summary.market_id},
            {"$set": _to_storage(summary.model_dump())},
            upsert=True,
        )

    def get_cached_summary(self, market_id: str) -> Optional[MarketSummary]:
        doc = self.summaries_col.find_one({"market_id": market_id, "expires_at": {"$gt": _now_naive()}})
        if not doc:
            return None
        return MarketSummary(**_from_storage(doc))

    def list_markets_missing_summary(self, limit: int) -> List[SourceMarket]:
        live_ids = self.summaries_col.distinct("market_id", {"expires_at": {"$gt": _now_naive()}})
        return self._top_markets_excluding(live_ids, limit)

    # Geocodes

    def save_geocode(self, geocode: MarketGeocode) -> None:
        self.geocodes_col.update_one(
            {"market_id": geocode.market_id},
            {"$set": _to_storage(geocode.model_dump())},
            upsert=True,
        )

    def get_cached_geocode(self, market_id: str) -> Optional[MarketGeocode]:
        doc = self.geocodes_col.find_one({"market_id": market_id, "expires_at": {"$gt": _now_naive()}})
        if not doc:
            return None
        return MarketGeocode(**_from_storage(doc))

    def list_markets_missing_geocode(self, limit: int) -> List[SourceMarket]:
        live_ids = self.geocodes_col.distinct("market_id", {"expires_at": {"$gt": _now_naive()}})
        return self._top_markets_excluding(live_ids, limit)

    def _top_markets_excluding(self, excluded_ids: List[str], limit: int) -> List[SourceMarket]:
        cursor = (
            self.source_markets_col.find({"active": True, "closed": False, "id": {"$nin": list(excluded_ids)}})
            .sort("volume_24hr", DESCENDING)
            .limit(max(1, int(limit)))
        )
        return [SourceMarket(**_from_storage(doc)) for doc in cursor]


def _now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_storage(value: Any) -> Any:
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, dict):
        return {k: _to_storage(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_storage(v) for v in value]
    return value


def _from_storage(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = {k: v for k, v in doc.items() if k != "_id"}
    return _restore_datetimes(out)


def _restore_datetimes(value: Any) -> Any:
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, dict):
        return {k: _restore_datetimes(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_restore_datetimes(v) for v in value]
    return value


def _as_utc(value: object) -> Optional[datetime]:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
