from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from openai import OpenAI

from market_pulse.models import SourceMarket
from market_pulse.utils.text import parse_json_payload, truncate_text

logger = logging.getLogger(__name__)


@dataclass
class GeoResult:
    index: int
    latitude: float
    longitude: float
    city: Optional[str] = None
    country: Optional[str] = None
    confidence: int = 50


class LLMGeocoder:
    """Batch geocoder on the Responses API with the web-search plugin enabled."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout_seconds: int = 120,
        max_output_tokens: int = 5000,
        web_results: int = 3,
    ):
        self.api_key = api_key.strip()
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.web_results = web_results
        self._client = (
            OpenAI(
                api_key=self.api_key,
                base_url=base_url,
                timeout=timeout_seconds,
                default_headers={"X-Title": "Market Pulse Geocoding"},
            )
            if self.api_key
            else None
        )

    def enabled(self) -> bool:
        return self._client is not None

    def geocode_batch(self, markets: Sequence[SourceMarket]) -> List[GeoResult]:
        if not markets:
            return []
        if not self.enabled():
            logger.warning("Geocoder not configured (missing OPENROUTER_API_KEY)")
            return []

        try:
            response = self._client.responses.create(
                model=self.model,
                input=[
                    {
                        "type": "message",
                        "role": "user",
                        "content": [{"type": "input_text", "text": build_geocode_prompt(markets)}],
                    }
                ],
                max_output_tokens=self.max_output_tokens,
                extra_body={"plugins": [{"id": "web", "max_results": self.web_results}]},
            )
            content = (response.output_text or "").strip()
        except Exception as exc:
            logger.warning("Geocode batch call failed", extra={"error": str(exc), "batch": len(markets)})
            return []

        if not content:
            return []
        try:
            payload = parse_json_payload(content)
        except ValueError as exc:
            logger.warning("Geocode batch returned unparseable output", extra={"error": str(exc)})
            return []
        return parse_geo_results(payload, batch_size=len(markets))


def build_geocode_prompt(markets: Sequence[SourceMarket]) -> str:
    block = "\n".join(
        f"[{i}] \"{m.question}\" (category: {m.category or 'general'})" for i, m in enumerate(markets)
    )
    return (
        "You are a geographic classification specialist with web search capabilities. You determine the most "
        "relevant real-world location for prediction market questions. Use web search to verify current facts "
        "about people, events, and locations mentioned in these markets.\n\n"
        "For each market below, determine the PRIMARY geographic location most relevant to the market's "
        "subject matter.\n\n"
        "RULES:\n"
        "- USE WEB SEARCH to look up current information about the people, events, or topics in each market\n"
        "- Pick the city/region most directly tied to the market's topic (e.g. a US politics market -> "
        "Washington DC, a Ukraine war market -> Kyiv, a crypto market -> New York or San Francisco)\n"
        "- For person-specific markets, search for the person's current role and location\n"
        "- For global/abstract markets, pick the city of the most relevant institution or industry hub\n"
        "- Every market MUST get a location, never return null\n"
        "- Confidence: 90-100 = clearly about a specific place, 60-89 = reasonable geographic association, "
        "30-59 = loosely associated\n\n"
        f"MARKETS:\n{block}\n\n"
        "Respond with ONLY a valid JSON array, no markdown fences, no explanation:\n"
        "[{\"index\": <number>, \"latitude\": <number>, \"longitude\": <number>, \"city\": \"<string>\", "
        "\"country\": \"<string>\", \"confidence\": <number>}]"
    )


def parse_geo_results(payload: Any, batch_size: int) -> List[GeoResult]:
    if isinstance(payload, dict):
        payload = payload.get("results") or payload.get("markets") or []
    if not isinstance(payload, list):
        return []

    out: List[GeoResult] = []
    seen: set[int] = set()
    for item in payload:
        if not isinstance(item, dict):
            continue
        index, lat, lon = item.get("index"), item.get("latitude"), item.get("longitude")
        if not _is_number(index) or not _is_number(lat) or not _is_number(lon):
            continue
        index = int(index)
        if index < 0 or index >= batch_size or index in seen:
            continue
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            continue
        confidence = item.get("confidence")
        confidence = int(confidence) if _is_number(confidence) and confidence else 50
        seen.add(index)
        out.append(
            GeoResult(
                index=index,
                latitude=float(lat),
                longitude=float(lon),
                city=truncate_text(str(item.get("city") or ""), 120) or None,
                country=truncate_text(str(item.get("country") or ""), 120) or None,
                confidence=max(0, min(100, confidence)),
            )
        )
    return out


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
