from __future__ import annotations

import argparse
import logging
import time
from typing import Any, Dict, Optional

from market_pulse.clients.llm_geocoder import LLMGeocoder
from market_pulse.clients.llm_match_classifier import LLMMatchClassifier
from market_pulse.clients.llm_summarizer import LLMSummarizer
from market_pulse.config import Settings, get_settings
from market_pulse.connectors.kalshi import KalshiConnector
from market_pulse.connectors.polymarket import PolymarketConnector
from market_pulse.connectors.whales import WhaleConnector
from market_pulse.engine.auto_match import auto_match_markets
from market_pulse.engine.geocoding import auto_geocode_markets
from market_pulse.engine.matcher import MatchDecisionEngine
from market_pulse.engine.summaries import auto_summarize_top_markets
from market_pulse.engine.sync import sync_kalshi, sync_polymarket
from market_pulse.storage.mongo import MongoStore
from market_pulse.utils.logging import configure_logging

logger = logging.getLogger(__name__)

JOBS = ("sync", "match", "geocode", "summarize", "whales")


class PulseAgent:
    def __init__(self, settings: Optional[Settings] = None, store: Optional[MongoStore] = None):
        self.settings = settings or get_settings()
        self.store = store or MongoStore(self.settings.mongodb_uri, self.settings.mongodb_db)

        self.polymarket = PolymarketConnector(
            gamma_base_url=self.settings.polymarket_gamma_base_url,
            limit=self.settings.polymarket_limit,
            builder_api_key=self.settings.polymarket_builder_api_key,
        )
        self.kalshi = KalshiConnector(base_url=self.settings.kalshi_base_url, limit=self.settings.kalshi_limit)
        self.whales = WhaleConnector(
            data_api_base_url=self.settings.polymarket_data_api_base_url,
            time_period=self.settings.whale_time_period,
            limit=self.settings.whale_leaderboard_limit,
            cache_ttl_seconds=self.settings.whale_cache_ttl_seconds,
        )

        self.classifier = LLMMatchClassifier(
            api_key=self.settings.openrouter_api_key,
            model=self.settings.match_model,
            base_url=self.settings.openrouter_base_url,
            timeout_seconds=self.settings.llm_timeout_seconds,
        )
        self.engine = MatchDecisionEngine(
            classifier=self.classifier,
            max_llm_candidates=self.settings.match_max_llm_candidates,
        )
        self.summarizer = LLMSummarizer(
            api_key=self.settings.openrouter_api_key,
            model=self.settings.summary_model,
            base_url=self.settings.openrouter_base_url,
        )
        self.geocoder = LLMGeocoder(
            api_key=self.settings.openrouter_api_key,
            model=self.settings.geocode_model,
            base_url=self.settings.openrouter_base_url,
        )

    def run_cycle(self, job: str = "all", batch_size: Optional[int] = None) -> Dict[str, Any]:
        jobs = JOBS if job == "all" else (job,)
        results: Dict[str, Any] = {}
        for name in jobs:
            try:
                results[name] = getattr(self, f"run_{name}")(batch_size)
            except Exception as exc:
                # One failing job must not stop the others.
                logger.exception("Job failed", extra={"job": name, "error": str(exc)})
                results[name] = None
        return results

    def run_sync(self, batch_size: Optional[int] = None) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for venue, fn, connector in (
            ("polymarket", sync_polymarket, self.polymarket),
            ("kalshi", sync_kalshi, self.kalshi),
        ):
            try:
                out[venue] = fn(self.store, connector)
            except Exception as exc:
                logger.error("Venue sync failed", extra={"venue": venue, "error": str(exc)})
                out[venue] = None
        return out

    def run_match(self, batch_size: Optional[int] = None):
        if not self.classifier.enabled():
            logger.warning("Match classifier disabled because OPENROUTER_API_KEY is missing, entity tiers only")
        return auto_match_markets(
            self.store,
            self.engine,
            batch_size=batch_size or self.settings.match_batch_size,
            ttl_hours=self.settings.match_ttl_hours,
            pool_limit=self.settings.match_pool_limit,
            rate_limit_seconds=self.settings.match_rate_limit_seconds,
        )

    def run_geocode(self, batch_size: Optional[int] = None):
        return auto_geocode_markets(
            self.store,
            self.geocoder,
            max_markets=batch_size or self.settings.geocode_max_markets,
            batch_size=self.settings.geocode_batch_size,
            ttl_days=self.settings.geocode_ttl_days,
            rate_limit_seconds=self.settings.geocode_rate_limit_seconds,
        )

    def run_summarize(self, batch_size: Optional[int] = None):
        return auto_summarize_top_markets(
            self.store,
            self.summarizer,
            count=batch_size or self.settings.summary_batch_size,
            ttl_hours=self.settings.summary_ttl_hours,
            rate_limit_seconds=self.settings.summary_rate_limit_seconds,
        )

    def run_whales(self, batch_size: Optional[int] = None) -> Dict[str, Any]:
        whales = self.whales.fetch_leaderboard(limit=batch_size)
        top = whales[0] if whales else None
        if top:
            logger.info("Top whale: %s volume=%.0f pnl=%.0f", top.username or top.address, top.volume, top.pnl)
        return {"traders": len(whales)}


def main() -> None:
    parser = argparse.ArgumentParser(description="Cross-venue prediction market cache and matcher")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--job", choices=("all",) + JOBS, default="all", help="Run only one job")
    parser.add_argument("--batch-size", type=int, default=None, help="Override the job batch size")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level)
    agent = PulseAgent(settings)

    if args.once:
        results = agent.run_cycle(job=args.job, batch_size=args.batch_size)
        logger.info("Cycle complete: %s", results)
        return

    while True:
        start = time.time()
        try:
            results = agent.run_cycle(job=args.job, batch_size=args.batch_size)
            logger.info("Cycle complete: %s", results)
        except Exception as exc:
            logger.exception("Cycle failed", extra={"error": str(exc)})

        elapsed = time.time() - start
        sleep_for = max(1, settings.loop_interval_seconds - int(elapsed))
        time.sleep(sleep_for)


if __name__ == "__main__":
    main()
