from __future__ import annotations

import json
import re
from typing import Any

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE_RE.sub("", text or "").strip()


def parse_json_payload(text: str) -> Any:
    """Parse a model reply as JSON after removing Markdown fences.

    Falls back to the outermost ``{...}`` or ``[...]`` span when the reply
    carries stray prose. Raises ``ValueError`` when nothing parses.
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise ValueError("empty content")

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    patterns = [r"\{[\s\S]*\}", r"\[[\s\S]*\]"]
    first_brace, first_bracket = cleaned.find("{"), cleaned.find("[")
    if first_bracket != -1 and (first_brace == -1 or first_bracket < first_brace):
        patterns.reverse()
    for pattern in patterns:
        match = re.search(pattern, cleaned)
        if not match:
            continue
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            continue
    raise ValueError(f"unparseable JSON: {cleaned[:120]}")


def truncate_text(text: str, max_len: int) -> str:
    cleaned = (text or "").strip()
    if max_len <= 3 or len(cleaned) <= max_len:
        return cleaned
    return cleaned[: max_len - 3].rstrip() + "..."


def format_usd(value: float) -> str:
    if value >= 1_000_000:
        return f"${value / 1_000_000:.2f}M"
    if value >= 1_000:
        return f"${value / 1_000:.1f}K"
    return f"${value:.0f}"
