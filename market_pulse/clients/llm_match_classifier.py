from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Sequence, Union

from openai import APIConnectionError, APIStatusError, OpenAI

from market_pulse.engine.prefilter import PreFilterCandidate
from market_pulse.utils.text import parse_json_payload

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 30

_SYSTEM_PROMPT = (
    "You are a specialist prediction-market analyst. You compare market resolution criteria across platforms "
    "to determine if two markets are asking about the same outcome. You respond ONLY in valid JSON."
)


@dataclass
class MatchDecision:
    event_index: int
    confidence: int
    reasoning: str = ""
    matched_concepts: List[str] = field(default_factory=list)


@dataclass
class ClassifierOk:
    decision: MatchDecision


@dataclass
class ClassifierUnavailable:
    detail: str


@dataclass
class ClassifierMalformed:
    detail: str
    raw: str = ""


ClassifierOutcome = Union[ClassifierOk, ClassifierUnavailable, ClassifierMalformed]


class LLMMatchClassifier:
    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout_seconds: int = 30,
        temperature: float = 0.1,
        max_tokens: int = 200,
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
                default_headers={"X-Title": "Market Pulse Matching Engine"},
            )
            if self.api_key
            else None
        )

    def enabled(self) -> bool:
        return self._client is not None

    def classify(self, question: str, candidates: Sequence[PreFilterCandidate]) -> ClassifierOutcome:
        if not self.enabled():
            return ClassifierUnavailable("no API key configured")

        sent = list(candidates[:MAX_CANDIDATES])
        prompt = build_matching_prompt(question, sent)

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except APIStatusError as exc:
            logger.warning("Match classifier HTTP error: status=%s | q=%s", exc.status_code, question[:120])
            return ClassifierUnavailable(f"status {exc.status_code}")
        except APIConnectionError as exc:
            logger.warning("Match classifier transport error: %s | q=%s", str(exc), question[:120])
            return ClassifierUnavailable(str(exc))
        except Exception as exc:
            logger.warning("Match classifier call failed: %s | q=%s", str(exc), question[:120])
            return ClassifierUnavailable(str(exc))

        content = _response_text(response)
        if not content:
            logger.warning("Match classifier returned empty content | q=%s", question[:120])
            return ClassifierMalformed("empty content")

        try:
            payload = parse_json_payload(content)
        except ValueError as exc:
            logger.warning("Match classifier returned unparseable output: %s", str(exc))
            return ClassifierMalformed(str(exc), raw=content)

        return parse_match_decision(payload, raw=content)


def build_matching_prompt(question: str, candidates: Sequence[PreFilterCandidate]) -> str:
    event_block = "\n".join(
        f"[{idx}] \"{c.title}\"" + (f" - {c.subtitle}" if c.subtitle else "")
        for idx, c in enumerate(candidates)
    )
    return (
        "You are a prediction-market matching engine. Your job is to determine which Kalshi event (if any) "
        "is asking about the SAME real-world outcome as the given Polymarket question.\n\n"
        f"POLYMARKET QUESTION:\n\"{question}\"\n\n"
        f"KALSHI EVENTS (indexed):\n{event_block}\n\n"
        "RULES:\n"
        "1. A match means both markets would resolve the same way given the same real-world outcome. "
        "Surface keyword overlap is NOT enough - the resolution criteria must align.\n"
        "2. If no event is a genuine semantic match, return eventIndex -1.\n"
        "3. Confidence scale: 0 = no match, 1-30 = weak/tangential, 31-60 = related but different resolution, "
        "61-85 = strong match with minor differences, 86-100 = near-identical resolution criteria.\n\n"
        "Respond with ONLY valid JSON, no markdown fences:\n"
        "{\"eventIndex\": <number>, \"confidence\": <number>, \"reasoning\": \"<one sentence>\", "
        "\"matchedConcepts\": [\"concept1\", \"concept2\"]}"
    )


def parse_match_decision(payload: Any, raw: str = "") -> ClassifierOutcome:
    if not isinstance(payload, dict):
        return ClassifierMalformed("payload is not an object", raw=raw)

    event_index = _to_int(payload.get("eventIndex"))
    confidence = _to_int(payload.get("confidence"))
    if event_index is None:
        return ClassifierMalformed("missing or non-numeric eventIndex", raw=raw)
    if confidence is None:
        return ClassifierMalformed("missing or non-numeric confidence", raw=raw)

    concepts = payload.get("matchedConcepts")
    matched_concepts = [str(c).strip() for c in concepts if str(c).strip()] if isinstance(concepts, list) else []

    return ClassifierOk(
        MatchDecision(
            event_index=event_index,
            confidence=max(0, min(100, confidence)),
            reasoning=str(payload.get("reasoning") or "").strip(),
            matched_concepts=matched_concepts,
        )
    )


def _response_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return str(getattr(message, "content", None) or "").strip()


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(round(number))

