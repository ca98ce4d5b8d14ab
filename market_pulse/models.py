from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

MatchMethod = Literal["entity", "ai", "none"]


class SemanticContext(str, Enum):
    LEADERSHIP = "leadership"
    ACTION = "action"
    PRICE = "price"
    TIMING = "timing"
    OUTCOME = "outcome"
    COMPARISON = "comparison"
    UNKNOWN = "unknown"


class SourceMarket(BaseModel):
    """Cached Polymarket market row."""

    id: str
    question: str
    condition_id: str = ""
    slug: str = ""
    description: str = ""
    category: str = ""
    end_date: Optional[datetime] = None
    outcomes: List[str] = Field(default_factory=lambda: ["Yes", "No"])
    outcome_prices: List[float] = Field(default_factory=lambda: [0.5, 0.5])
    volume: float = 0.0
    volume_24hr: float = 0.0
    volume_1wk: float = 0.0
    liquidity: float = 0.0
    active: bool = True
    closed: bool = False
    best_bid: float = 0.0
    best_ask: float = 0.0
    last_trade_price: float = 0.0
    updated_at: datetime


class TargetMarket(BaseModel):
    ticker: str
    event_ticker: str = ""
    title: str = ""
    subtitle: str = ""
    status: str = "open"
    yes_bid: float = 0.0
    yes_ask: float = 0.0
    no_bid: float = 0.0
    no_ask: float = 0.0
    last_price: float = 0.0
    volume: float = 0.0
    volume_24h: float = 0.0
    open_interest: float = 0.0
    close_time: Optional[datetime] = None
    rules_primary: str = ""


class TargetEvent(BaseModel):
    """Kalshi event with its nested markets."""

    event_ticker: str
    series_ticker: str = ""
    title: str
    subtitle: str = ""
    category: str = ""
    mutually_exclusive: bool = False
    markets: List[TargetMarket] = Field(default_factory=list)
    updated_at: Optional[datetime] = None


class MatchResult(BaseModel):
    source_market_id: str
    source_question: str
    target_event_id: Optional[str] = None
    target_market_id: Optional[str] = None
    target_event_title: Optional[str] = None
    similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence: int = Field(default=0, ge=0, le=100)
    match_method: MatchMethod = "none"
    matched_entities: List[str] = Field(default_factory=list)
    reasoning: str = ""
    matched_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @property
    def is_match(self) -> bool:
        return self.target_event_id is not None


class MarketSummary(BaseModel):
    market_id: str
    summary_text: str
    model: str
    generated_at: datetime
    expires_at: datetime


class MarketGeocode(BaseModel):
    market_id: str
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    city: Optional[str] = None
    country: Optional[str] = None
    confidence: int = Field(default=50, ge=0, le=100)
    model: str
    geocoded_at: datetime
    expires_at: datetime


class WhaleTrader(BaseModel):
    """One row of the Polymarket volume leaderboard."""

    rank: int = Field(default=0, ge=0)
    address: str = ""
    username: str = ""
    profile_image: str = ""
    volume: float = 0.0
    pnl: float = 0.0
    x_username: str = ""
    markets_traded: int = Field(default=0, ge=0)
