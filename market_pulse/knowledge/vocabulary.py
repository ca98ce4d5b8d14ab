from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Sequence, Tuple

from market_pulse.models import SemanticContext


@dataclass(frozen=True)
class EntityVocabulary:
    """Immutable entity/context tables shared by the extractor and the context classifier.

    ``entity_patterns`` keeps category order and pattern order, which decides
    which surface form is emitted first for a canonical key.
    """

    entity_patterns: Tuple[Tuple[str, Tuple[re.Pattern[str], ...]], ...]
    aliases: Mapping[str, str]
    context_keywords: Tuple[Tuple[SemanticContext, Tuple[str, ...]], ...]
    context_adjacency: Mapping[SemanticContext, FrozenSet[SemanticContext]]


def build_vocabulary(
    entity_patterns: Sequence[Tuple[str, Iterable[str]]],
    aliases: Mapping[str, str],
    context_keywords: Sequence[Tuple[SemanticContext, Iterable[str]]],
    context_adjacency: Mapping[SemanticContext, Iterable[SemanticContext]],
) -> EntityVocabulary:
    compiled = tuple(
        (category, tuple(re.compile(p, re.IGNORECASE) for p in patterns))
        for category, patterns in entity_patterns
    )
    keywords = tuple(
        (ctx, tuple(kw.lower() for kw in kws))
        for ctx, kws in context_keywords
        if ctx is not SemanticContext.UNKNOWN
    )
    adjacency = {ctx: frozenset(others) for ctx, others in context_adjacency.items()}
    return EntityVocabulary(
        entity_patterns=compiled,
        aliases=MappingProxyType({k.lower(): v for k, v in aliases.items()}),
        context_keywords=keywords,
        context_adjacency=MappingProxyType(adjacency),
    )


@lru_cache(maxsize=1)
def default_vocabulary() -> EntityVocabulary:
    return build_vocabulary(
        entity_patterns=_ENTITY_PATTERNS,
        aliases=_ALIASES,
        context_keywords=_CONTEXT_KEYWORDS,
        context_adjacency=_CONTEXT_ADJACENCY,
    )


_ENTITY_PATTERNS: List[Tuple[str, List[str]]] = [
    (
        "people",
        [
            r"\b(trump|donald\s+j\.?\s+trump|donald\s+trump)\b",
            r"\b(biden|joe\s+biden|joseph\s+biden)\b",
            r"\b(harris|kamala)\b",
            r"\b(musk|elon\s+musk|elon)\b",
            r"\b(putin|vladimir\s+putin)\b",
            r"\b(xi\s+jinping|xi)\b",
            r"\b(zelensky|zelenskyy)\b",
            r"\b(powell|jerome\s+powell)\b",
            r"\b(desantis|ron\s+desantis)\b",
            r"\b(newsom|gavin\s+newsom)\b",
            r"\b(vance|jd\s+vance)\b",
            r"\b(ramaswamy|vivek)\b",
            r"\b(haley|nikki\s+haley)\b",
            r"\b(stephen\s+miran|miran)\b",
            r"\b(judy\s+shelton|shelton)\b",
            r"\b(kevin\s+warsh|warsh)\b",
            r"\b(kevin\s+hassett|hassett)\b",
            r"\b(christopher\s+waller|waller)\b",
            r"\b(michelle\s+bowman|bowman)\b",
            r"\b(rick\s+rieder|rieder)\b",
        ],
    ),
    (
        "orgs",
        [
            r"\b(fed|federal\s+reserve|fomc)\b",
            r"\b(openai)\b",
            r"\b(spacex)\b",
            r"\b(tesla)\b",
            r"\b(nvidia)\b",
            r"\b(nato)\b",
            r"\bun\s|united\s+nations\b",
            r"\b(doge|department\s+of\s+government\s+efficiency)\b",
        ],
    ),
    (
        "places",
        [
            r"\b(ukraine|ukrainian)\b",
            r"\b(russia|russian)\b",
            r"\b(china|chinese|beijing)\b",
            r"\b(iran|iranian|tehran)\b",
            r"\b(gaza|palestinian|hamas)\b",
            r"\b(israel|israeli)\b",
            r"\b(taiwan|taiwanese)\b",
            r"\b(north\s+korea|dprk|pyongyang)\b",
            r"\b(mexico|mexican)\b",
            r"\b(mars)\b",
            r"\b(u\.?k\.?|united\s+kingdom|britain)\b",
        ],
    ),
    (
        "topics",
        [
            r"\b(shutdown|government\s+shutdown)\b",
            r"\b(interest\s+rate|rate\s+cut|rate\s+hike)\b",
            r"\b(inflation)\b",
            r"\b(recession)\b",
            r"\b(tariff|tariffs)\b",
            r"\b(impeach|impeachment)\b",
            r"\b(bitcoin|btc)\b",
            r"\b(ethereum|eth)\b",
            r"\b(ipo)\b",
            r"\b(ai\s+|artificial\s+intelligence)\b",
            r"\b(ceasefire)\b",
            r"\b(executive\s+order)\b",
            r"\b(nominate|nomination)\b",
            r"\b(leader|supreme\s+leader)\b",
            r"\b(successor)\b",
        ],
    ),
]

_ALIASES: Dict[str, str] = {
    "donald trump": "trump",
    "donald j trump": "trump",
    "donald j. trump": "trump",
    "joe biden": "biden",
    "joseph biden": "biden",
    "kamala harris": "harris",
    "kamala": "harris",
    "elon musk": "musk",
    "elon": "musk",
    "vladimir putin": "putin",
    "xi jinping": "xi",
    "zelenskyy": "zelensky",
    "jerome powell": "powell",
    "ron desantis": "desantis",
    "gavin newsom": "newsom",
    "jd vance": "vance",
    "nikki haley": "haley",
    "vivek ramaswamy": "ramaswamy",
    "vivek": "ramaswamy",
    "stephen miran": "miran",
    "judy shelton": "shelton",
    "kevin warsh": "warsh",
    "kevin hassett": "hassett",
    "christopher waller": "waller",
    "michelle bowman": "bowman",
    "rick rieder": "rieder",
    "federal reserve": "fed",
    "fomc": "fed",
    "united nations": "un",
    "department of government efficiency": "doge",
    "ukrainian": "ukraine",
    "russian": "russia",
    "chinese": "china",
    "beijing": "china",
    "iranian": "iran",
    "tehran": "iran",
    "north korea": "dprk",
    "pyongyang": "dprk",
    "united kingdom": "uk",
    "britain": "uk",
    "u.k.": "uk",
    "u.k": "uk",
    "palestinian": "gaza",
    "hamas": "gaza",
    "israeli": "israel",
    "taiwanese": "taiwan",
    "mexican": "mexico",
    "government shutdown": "shutdown",
    "rate cut": "interest rate",
    "rate hike": "interest rate",
    "tariffs": "tariff",
    "impeachment": "impeach",
    "btc": "bitcoin",
    "eth": "ethereum",
    "artificial intelligence": "ai",
    "nomination": "nominate",
    "supreme leader": "leader",
}

_CONTEXT_KEYWORDS: List[Tuple[SemanticContext, List[str]]] = [
    (
        SemanticContext.LEADERSHIP,
        [
            "nominate",
            "nomination",
            "successor",
            "prime minister",
            "chief",
            "chair",
            "chairman",
            "president",
            "elect",
            "win",
            "governor",
            "senator",
            "mayor",
            "appointee",
        ],
    ),
    (
        SemanticContext.ACTION,
        ["strike", "attack", "ban", "sanction", "deport", "pardon", "invade", "war", "ceasefire", "shutdown", "impeach", "veto"],
    ),
    (SemanticContext.PRICE, ["cost", "above", "below", "reach", "hit", "price", "rate", "gdp", "inflation", "cpi"]),
    (SemanticContext.TIMING, ["before", "after", "by", "date", "deadline", "end of", "year", "month"]),
    (SemanticContext.OUTCOME, ["happen", "occur", "will", "resolve"]),
    (SemanticContext.COMPARISON, ["more", "less", "higher", "lower", "beat", "vs"]),
]

_CONTEXT_ADJACENCY: Dict[SemanticContext, List[SemanticContext]] = {
    SemanticContext.LEADERSHIP: [SemanticContext.OUTCOME, SemanticContext.TIMING],
    SemanticContext.ACTION: [SemanticContext.OUTCOME, SemanticContext.TIMING],
    SemanticContext.PRICE: [SemanticContext.TIMING, SemanticContext.COMPARISON],
    SemanticContext.TIMING: [
        SemanticContext.LEADERSHIP,
        SemanticContext.ACTION,
        SemanticContext.PRICE,
        SemanticContext.OUTCOME,
    ],
    SemanticContext.OUTCOME: [SemanticContext.LEADERSHIP, SemanticContext.ACTION, SemanticContext.TIMING],
    SemanticContext.COMPARISON: [SemanticContext.PRICE],
}
