from __future__ import annotations

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db: str = Field(default="market_pulse", alias="MONGODB_DB")
    loop_interval_seconds: int = Field(default=300, alias="LOOP_INTERVAL_SECONDS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    polymarket_gamma_base_url: str = Field(
        default="https://gamma-api.polymarket.com", alias="POLYMARKET_GAMMA_BASE_URL"
    )
    polymarket_limit: int = Field(default=300, alias="POLYMARKET_LIMIT")
    polymarket_builder_api_key: str = Field(default="", alias="POLYMARKET_BUILDER_API_KEY")
    polymarket_data_api_base_url: str = Field(
        default="https://data-api.polymarket.com", alias="POLYMARKET_DATA_API_BASE_URL"
    )
    whale_time_period: str = Field(default="ALL", alias="WHALE_TIME_PERIOD")
    whale_leaderboard_limit: int = Field(default=10, alias="WHALE_LEADERBOARD_LIMIT")
    whale_cache_ttl_seconds: int = Field(default=300, alias="WHALE_CACHE_TTL_SECONDS")

    kalshi_base_url: str = Field(default="https://api.elections.kalshi.com/trade-api/v2", alias="KALSHI_BASE_URL")
    kalshi_limit: int = Field(default=200, alias="KALSHI_LIMIT")

    openrouter_api_key: str = Field(default="", alias="OPENROUTER_API_KEY")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL")
    llm_timeout_seconds: int = Field(default=30, alias="LLM_TIMEOUT_SECONDS")

    match_model: str = Field(default="google/gemini-2.0-flash-001", alias="MATCH_MODEL")
    match_batch_size: int = Field(default=30, alias="MATCH_BATCH_SIZE")
    match_ttl_hours: int = Field(default=24, alias="MATCH_TTL_HOURS")
    match_rate_limit_seconds: float = Field(default=1.5, alias="MATCH_RATE_LIMIT_SECONDS")
    match_pool_limit: int = Field(default=500, alias="MATCH_POOL_LIMIT")
    match_max_llm_candidates: int = Field(default=30, alias="MATCH_MAX_LLM_CANDIDATES")

    summary_model: str = Field(default="x-ai/grok-4.1-fast", alias="SUMMARY_MODEL")
    summary_batch_size: int = Field(default=20, alias="SUMMARY_BATCH_SIZE")
    summary_ttl_hours: int = Field(default=24, alias="SUMMARY_TTL_HOURS")
    summary_rate_limit_seconds: float = Field(default=2.0, alias="SUMMARY_RATE_LIMIT_SECONDS")

    geocode_model: str = Field(default="moonshotai/kimi-k2.5", alias="GEOCODE_MODEL")
    geocode_max_markets: int = Field(default=50, alias="GEOCODE_MAX_MARKETS")
    geocode_batch_size: int = Field(default=10, alias="GEOCODE_BATCH_SIZE")
    geocode_ttl_days: int = Field(default=7, alias="GEOCODE_TTL_DAYS")
    geocode_rate_limit_seconds: float = Field(default=1.5, alias="GEOCODE_RATE_LIMIT_SECONDS")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
