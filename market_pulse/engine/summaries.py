from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Tuple

from market_pulse.clients.llm_summarizer import LLMSummarizer, SummaryError
from market_pulse.models import MarketSummary

logger = logging.getLogger(__name__)


@dataclass
class SummaryReport:
    generated: int = 0
    errors: int = 0


def get_or_generate_summary(
    store,
    summarizer: LLMSummarizer,
    market_id: str,
    ttl_hours: int = 24,
) -> Tuple[MarketSummary, bool]:
    """Return the live summary for ``market_id``, generating one on a cache miss.

    Raises ``SummaryError`` when the market is not cached or the model call fails.
    """
    cached = store.get_cached_summary(market_id)
    if cached is not None:
        return cached, True

    market = store.get_source_market(market_id)
    if market is None:
        raise SummaryError(f"market {market_id} not found in cache, run the Polymarket sync first")

    text = summarizer.summarize(market)
    now = datetime.now(timezone.utc)
    summary = MarketSummary(
        market_id=market_id,
        summary_text=text,
        model=summarizer.model,
        generated_at=now,
        expires_at=now + timedelta(hours=ttl_hours),
    )
    store.save_summary(summary)
    return summary, False


def auto_summarize_top_markets(
    store,
    summarizer: LLMSummarizer,
    count: int = 20,
    ttl_hours: int = 24,
    rate_limit_seconds: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> SummaryReport:
    report = SummaryReport()
    if not summarizer.enabled():
        logger.info("Auto-summarize skipped: summary service not configured")
        return report

    markets = store.list_markets_missing_summary(limit=count)
    logger.info("Auto-summarizing %s markets", len(markets))

    for i, market in enumerate(markets):
        try:
            get_or_generate_summary(store, summarizer, market.id, ttl_hours=ttl_hours)
            report.generated += 1
        except SummaryError as exc:
            report.errors += 1
            logger.warning("Summary failed for market", extra={"market_id": market.id, "error": str(exc)})
        if i < len(markets) - 1 and rate_limit_seconds > 0:
            sleep(rate_limit_seconds)

    logger.info("Auto-summarize done: generated=%s errors=%s", report.generated, report.errors)
    return report
