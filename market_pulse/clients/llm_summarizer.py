from __future__ import annotations

import logging

from openai import OpenAI

from market_pulse.models import SourceMarket
from market_pulse.utils.text import format_usd

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You are a senior prediction market analyst at a top quantitative research firm. "
    "You produce institutional-grade market analysis briefs that synthesize data with real-world context. "
    "Your analyses include explicit bull and bear cases, identify key catalysts, and assess risk/reward. "
    "Your tone is sharp, professional, and confident. Use the section headers provided but write in clean "
    "flowing prose under each. Never use markdown formatting or bullet points."
)


class SummaryError(RuntimeError):
    pass


class LLMSummarizer:
    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout_seconds: int = 60,
        temperature: float = 0.7,
        max_tokens: int = 1200,
    ):
        self.api_key = api_key.strip()
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = (
            OpenAI(
                api_key=self.api_key,
                base_url=base_url,
                timeout=timeout_seconds,
                default_headers={"X-Title": "Market Pulse Summaries"},
            )
            if self.api_key
            else None
        )

    def enabled(self) -> bool:
        return self._client is not None

    def summarize(self, market: SourceMarket) -> str:
        if not self.enabled():
            raise SummaryError("summary service not configured (missing OPENROUTER_API_KEY)")

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": build_summary_prompt(market)},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as exc:
            logger.warning("Summary call failed", extra={"market_id": market.id, "error": str(exc)})
            raise SummaryError(f"summary service error: {exc}") from exc

        choices = getattr(response, "choices", None) or []
        text = ""
        if choices:
            text = str(getattr(choices[0].message, "content", None) or "").strip()
        if not text:
            raise SummaryError("empty response from summary model")
        return text


def build_summary_prompt(market: SourceMarket) -> str:
    outcomes = ", ".join(
        f"{name}: {price * 100:.1f}%" for name, price in zip(market.outcomes, market.outcome_prices)
    )
    end_date = f"{market.end_date:%B} {market.end_date.day}, {market.end_date.year}" if market.end_date else "N/A"

    lines = [
        "You are writing an institutional-grade prediction market analysis brief. Produce a thorough, "
        "insightful analysis for a sophisticated trader. Do NOT simply repeat the data; synthesize context, "
        "implications, and what the odds reveal about market sentiment and real-world dynamics.",
        "",
        f"MARKET: \"{market.question}\"",
        f"CATEGORY: {market.category or 'General'}",
        f"DESCRIPTION: {market.description or 'N/A'}",
        f"STATUS: {'Active' if market.active and not market.closed else 'Closed'}",
        f"RESOLUTION DATE: {end_date}",
        "",
        f"OUTCOMES: {outcomes}",
        f"TOTAL VOLUME: {format_usd(market.volume)}",
        f"24H VOLUME: {format_usd(market.volume_24hr)}",
    ]
    if market.volume_1wk:
        lines.append(f"7D VOLUME: {format_usd(market.volume_1wk)}")
    lines.append(f"LIQUIDITY: {format_usd(market.liquidity)}")
    if market.last_trade_price:
        lines.append(f"LAST TRADE: {market.last_trade_price * 100:.1f}c")
    lines += [
        "",
        "Structure your response EXACTLY as follows (use these exact headers):",
        "",
        "OVERVIEW",
        "A concise 2-3 sentence summary of the market, what it's pricing in, and the current consensus view.",
        "",
        "BULL CASE",
        "Present the strongest 2-3 arguments for the leading outcome. Reference real-world catalysts, trends, or data.",
        "",
        "BEAR CASE",
        "Present the strongest 2-3 arguments AGAINST the leading outcome. "
        "What risks or counter-narratives could flip the market?",
        "",
        "KEY DRIVERS",
        "Identify the 2-3 most important upcoming events or catalysts that will move this market.",
        "",
        "RISK ASSESSMENT",
        "One sentence rating the overall risk/reward. Comment on liquidity depth and volume trends.",
        "",
        "Keep the tone sharp, professional, and data-driven. Use plain text with the headers above. "
        "No markdown formatting, no bullet points: flowing prose under each header.",
    ]
    return "\n".join(lines)
