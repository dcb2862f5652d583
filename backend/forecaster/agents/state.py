from typing import List, Optional

from pydantic import BaseModel, Field

from forecaster.agents.analyst.schemas import AggregateResult
from forecaster.agents.critic.schemas import Critique
from forecaster.agents.planner.schemas import ResearchPlan
from forecaster.schemas.evidence import Evidence, ForecastCard
from forecaster.schemas.market import MarketPayload


class ForecastState(BaseModel):
    """
    State carried through the forecast graph.

    Nodes never mutate it in place; each returns an updated deep copy.
    """
    run_id: str
    market_url: str

    # Request options
    requested_interval: Optional[str] = None
    requested_drivers: List[str] = Field(default_factory=list)
    with_books: bool = True
    with_trades: bool = False

    # Market
    market: Optional[MarketPayload] = None
    question: str = ""
    p0: float = 0.5
    history_interval: str = "1d"
    interval_explanation: str = ""
    drivers: List[str] = Field(default_factory=list)

    # Research
    plan: Optional[ResearchPlan] = None
    pro: List[Evidence] = Field(default_factory=list)
    con: List[Evidence] = Field(default_factory=list)
    neutral: List[Evidence] = Field(default_factory=list)
    critique: Optional[Critique] = None
    follow_up_items: int = 0

    # Output
    aggregate: Optional[AggregateResult] = None
    card: Optional[ForecastCard] = None

    def evidence_pool(self) -> List[Evidence]:
        return self.pro + self.con + self.neutral
