"""
Runtime configuration.

Every value is read from the environment once; defaults match the
production tuning of the evidence weighting stages.
"""

from functools import lru_cache
from typing import Dict, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Service settings loaded from environment variables.

    Variable names are the upper-cased field names (DOMAIN_CAP,
    MARKET_ALPHA, SEARCH_API_KEY, ...). Empty variables fall back to the
    default.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    # --- LLM ---
    llm_provider: Literal["openai", "bedrock"] = "openai"
    llm_model: str = "gpt-4o"
    llm_model_small: str = "gpt-4o-mini"
    llm_temperature: float = 0.1
    bedrock_region: str = "us-east-1"

    # --- Search ---
    search_api_url: str = "https://api.valyu.ai/v1/deepsearch"
    search_api_key: Optional[str] = None
    search_max_results: int = 8
    search_timeout_seconds: float = 30.0

    # --- Market data ---
    market_api_url: str = "https://gamma-api.polymarket.com"
    market_clob_url: str = "https://clob.polymarket.com"
    market_data_api_url: str = "https://data-api.polymarket.com"
    kalshi_api_url: str = "https://api.elections.kalshi.com/trade-api/v2"
    market_timeout_seconds: float = 15.0

    # --- Storage ---
    redis_url: str = "redis://redis:6379/0"
    forecast_ttl_seconds: int = 60 * 60 * 24 * 30

    # --- Evidence weighting ---
    domain_cap: int = Field(default=5, ge=1)
    default_rho: float = Field(default=0.5, ge=0.0, le=1.0)
    rho_by_cluster: Dict[str, float] = Field(default_factory=dict)
    market_alpha: float = Field(default=0.1, ge=0.0, le=1.0)
    prior_floor: float = 0.1
    prior_ceiling: float = 0.9

    # --- Research ---
    max_follow_ups: int = 10
    max_evidence_age_days: int = 730
    seeds_per_side: int = 6

    # --- Control ---
    pipeline_timeout_seconds: float = 780.0
    langsmith_tracing: bool = False
    langsmith_project: str = "forecaster-dev"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from the environment (cached)."""
    return Settings()
