"""
Run parameters derived from the market payload: price-history interval
and forecast drivers.
"""

from datetime import datetime, timezone
from typing import List, Optional

from langchain_core.prompts import PromptTemplate

from forecaster.forecasting.weights import parse_published_at
from forecaster.llm.capability import LanguageModel, Ok, TaskSpec
from forecaster.logging import logger
from forecaster.schemas.market import MarketPayload

from .prompts import SYSTEM_PROMPT, USER_PROMPT_TEMPLATE
from .schemas import DriverSet


DEFAULT_INTERVAL = "1d"
SHORT_HORIZON_DAYS = 2
MEDIUM_HORIZON_DAYS = 14
THIN_VOLUME = 10_000.0

FALLBACK_DRIVERS = [
    (("election", "political"), ["Polling data", "Economic conditions", "Campaign events", "Voter turnout"]),
    (("bitcoin", "crypto"), ["Regulatory environment", "Institutional adoption", "Market sentiment", "Technical developments"]),
    (("ai", "technology"), ["Research breakthroughs", "Compute scaling", "Regulatory framework", "Investment funding"]),
    (("climate", "environment"), ["Policy changes", "Technology adoption", "Economic incentives", "International cooperation"]),
]
GENERIC_DRIVERS = ["Market conditions", "Regulatory environment", "Public sentiment", "Economic factors"]


# -----------------------------
# History interval
# -----------------------------

def days_to_close(payload: MarketPayload, now: Optional[datetime] = None) -> Optional[float]:
    close = parse_published_at(payload.market_facts.close_time)
    if close is None:
        return None
    now = now or datetime.now(timezone.utc)
    return (close - now).total_seconds() / 86400.0


def select_history_interval(payload: MarketPayload, now: Optional[datetime] = None) -> str:
    days = days_to_close(payload, now)
    if days is not None and days <= SHORT_HORIZON_DAYS:
        return "1h"
    if days is not None and days <= MEDIUM_HORIZON_DAYS:
        return "4h"
    volume = payload.market_facts.volume
    if volume is not None and volume < THIN_VOLUME:
        return "4h"
    return DEFAULT_INTERVAL


def explain_interval_choice(interval: str, payload: MarketPayload, now: Optional[datetime] = None) -> str:
    days = days_to_close(payload, now)
    horizon = f"{days:.1f} days to close" if days is not None else "no close time"
    volume = payload.market_facts.volume
    volume_text = f"volume ${volume:,.0f}" if volume is not None else "unknown volume"
    if interval == "1h":
        return f"Hourly history: market resolves soon ({horizon})."
    if interval == "4h":
        return f"4-hour history: near-term or thin market ({horizon}, {volume_text})."
    return f"Daily history: long horizon and sufficient liquidity ({horizon}, {volume_text})."


# -----------------------------
# Drivers
# -----------------------------

def fallback_drivers(question: str) -> List[str]:
    words = question.lower()
    for keywords, drivers in FALLBACK_DRIVERS:
        if any(k in words for k in keywords):
            return list(drivers)
    return list(GENERIC_DRIVERS)


class ParametersAgent:

    def __init__(self, llm: LanguageModel):
        self.llm = llm

    async def generate_drivers(self, payload: MarketPayload) -> List[str]:
        facts = payload.market_facts
        mid = payload.current_mid()
        prompt = PromptTemplate.from_template(USER_PROMPT_TEMPLATE).format(
            question=facts.question,
            price=f"{mid * 100:.1f}%" if mid is not None else "N/A",
            volume=f"${facts.volume:,.0f}" if facts.volume is not None else "N/A",
            liquidity=f"${facts.liquidity:,.0f}" if facts.liquidity is not None else "N/A",
        )
        result = await self.llm.generate_structured(
            TaskSpec(name="drivers", system=SYSTEM_PROMPT.strip(), prompt=prompt, tier="small"),
            DriverSet,
        )
        if isinstance(result, Ok) and result.value.drivers:
            logger.info("DRIVERS_GENERATED", extra={"drivers": result.value.drivers})
            return result.value.drivers

        logger.warning(
            "DRIVERS_FALLBACK",
            extra={"error": getattr(result, "error", "no drivers returned")},
        )
        return fallback_drivers(facts.question)
