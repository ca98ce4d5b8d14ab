from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from market_pulse.clients.llm_geocoder import LLMGeocoder
from market_pulse.models import MarketGeocode

logger = logging.getLogger(__name__)


@dataclass
class GeocodeReport:
    geocoded: int = 0
    errors: int = 0


def auto_geocode_markets(
    store,
    geocoder: LLMGeocoder,
    max_markets: int = 50,
    batch_size: int = 10,
    ttl_days: int = 7,
    rate_limit_seconds: float = 1.5,
    sleep: Callable[[float], None] = time.sleep,
) -> GeocodeReport:
    report = GeocodeReport()
    if not geocoder.enabled():
        logger.info("Auto-geocode skipped: geocoder not configured")
        return report

    markets = store.list_markets_missing_geocode(limit=max_markets)
    if not markets:
        logger.info("Auto-geocode: all markets geocoded")
        return report

    batch_size = max(1, int(batch_size))
    batches = [markets[i : i + batch_size] for i in range(0, len(markets), batch_size)]
    logger.info("Auto-geocode: %s markets in %s batches", len(markets), len(batches))

    for b, batch in enumerate(batches):
        try:
            results = geocoder.geocode_batch(batch)
            now = datetime.now(timezone.utc)
            for result in results:
                market = batch[result.index]
                store.save_geocode(
                    MarketGeocode(
                        market_id=market.id,
                        latitude=result.latitude,
                        longitude=result.longitude,
                        city=result.city,
                        country=result.country,
                        confidence=result.confidence,
                        model=geocoder.model,
                        geocoded_at=now,
                        expires_at=now + timedelta(days=ttl_days),
                    )
                )
                report.geocoded += 1
            logger.info("Geocode batch %s/%s: %s located", b + 1, len(batches), len(results))
        except Exception as exc:
            report.errors += 1
            logger.warning("Geocode batch failed", extra={"batch": b + 1, "error": str(exc)})

        if b < len(batches) - 1 and rate_limit_seconds > 0:
            sleep(rate_limit_seconds)

    logger.info("Auto-geocode done: geocoded=%s errors=%s", report.geocoded, report.errors)
    return report
