from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from market_pulse.engine.matcher import MatchDecisionEngine

logger = logging.getLogger(__name__)


@dataclass
class AutoMatchReport:
    matched: int = 0
    no_match: int = 0
    errors: int = 0

    @property
    def processed(self) -> int:
        return self.matched + self.no_match + self.errors


def auto_match_markets(
    store,
    engine: MatchDecisionEngine,
    batch_size: int = 30,
    ttl_hours: int = 24,
    pool_limit: int = 500,
    rate_limit_seconds: float = 1.5,
    sleep: Callable[[float], None] = time.sleep,
) -> AutoMatchReport:
    """Match the highest-volume unmatched source markets against the target pool.

    Decisions run sequentially. The pause after each classifier call is the
    only throttle; entity-only decisions run back to back.
    """
    report = AutoMatchReport()

    unmatched = store.list_unmatched_markets(limit=batch_size)
    if not unmatched:
        logger.info("Auto-match: no unmatched markets")
        return report

    pool = store.list_target_events(limit=pool_limit)
    if not pool:
        logger.warning("Auto-match skipped: target event pool is empty, run the Kalshi sync first")
        return report

    logger.info("Auto-match: %s markets against %s target events", len(unmatched), len(pool))

    for row in unmatched:
        market_id = row["id"]
        try:
            outcome = engine.evaluate(market_id, row["question"], pool)
            saved = store.save_market_match(outcome.result, ttl_hours=ttl_hours)
            if saved.is_match:
                report.matched += 1
                logger.info(
                    "Match: %s -> %s (%s, conf=%s)",
                    market_id,
                    saved.target_event_id,
                    saved.match_method,
                    saved.confidence,
                )
            else:
                report.no_match += 1
            if outcome.used_classifier and rate_limit_seconds > 0:
                sleep(rate_limit_seconds)
        except Exception as exc:
            report.errors += 1
            logger.warning("Auto-match failed for market", extra={"market_id": market_id, "error": str(exc)})

    logger.info(
        "Auto-match done: matched=%s no_match=%s errors=%s",
        report.matched,
        report.no_match,
        report.errors,
    )
    return report
