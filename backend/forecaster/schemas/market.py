"""
Market data payload consumed by the pipeline.

Mirrors the shape returned by the market data fetcher: static facts, the
live quote per outcome and optional price history.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class OutcomeQuote(BaseModel):
    token_id: Optional[str] = None
    outcome: Optional[str] = None
    bid: Optional[float] = None
    ask: Optional[float] = None
    mid: Optional[float] = None
    top_bid_size: Optional[float] = None
    top_ask_size: Optional[float] = None


class MarketFacts(BaseModel):
    question: str
    volume: Optional[float] = None
    liquidity: Optional[float] = None
    close_time: Optional[str] = None
    resolution_source: Optional[str] = None
    token_map: Dict[str, str] = Field(default_factory=dict)


class PricePoint(BaseModel):
    t: int
    p: float


class PriceHistory(BaseModel):
    token_id: str
    points: List[PricePoint] = Field(default_factory=list)


class TradePrint(BaseModel):
    price: float
    size: float
    side: Optional[str] = None
    timestamp: Optional[int] = None


class MarketPayload(BaseModel):
    platform: str = "polymarket"
    market_facts: MarketFacts
    market_state_now: List[OutcomeQuote] = Field(default_factory=list)
    history: List[PriceHistory] = Field(default_factory=list)
    recent_trades: List[TradePrint] = Field(default_factory=list)

    def current_mid(self) -> Optional[float]:
        """Mid price of the first outcome, if quoted."""
        if not self.market_state_now:
            return None
        return self.market_state_now[0].mid

    def summary(self) -> dict:
        """Progress-event view of the payload."""
        return {
            "platform": self.platform,
            "question": self.market_facts.question,
            "outcomes": len(self.market_facts.token_map),
            "history_series": len(self.history),
            "recent_trades": len(self.recent_trades),
            "volume": self.market_facts.volume,
            "liquidity": self.market_facts.liquidity,
            "close_time": self.market_facts.close_time,
            "resolution_source": self.market_facts.resolution_source,
            "prices_now": [
                {
                    "outcome": q.outcome,
                    "bid": q.bid,
                    "ask": q.ask,
                    "mid": q.mid,
                    "top_bid_size": q.top_bid_size,
                    "top_ask_size": q.top_ask_size,
                }
                for q in self.market_state_now
            ],
        }


class MarketSnapshot(BaseModel):
    """Live market probability, consulted only after the neutral posterior."""
    probability: float = Field(..., ge=0.0, le=1.0)
    as_of: str
    source: Optional[str] = None
