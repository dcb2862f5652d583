from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from forecaster.forecasting.aggregator import NeutralPosterior
from forecaster.schemas.evidence import Evidence


class RelevanceVerdict(BaseModel):
    id: str
    is_relevant: bool
    reasoning: str = ""


class RelevanceReport(BaseModel):
    relevant_evidence: List[RelevanceVerdict] = Field(default_factory=list)


class NicheScore(BaseModel):
    id: str
    authority: float = Field(..., description="0-1 niche credibility of the source for this topic")
    rationale: str = ""

    @field_validator("authority", mode="before")
    @classmethod
    def _clamp(cls, v):
        try:
            v = float(v)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, min(1.0, v))


class NicheReport(BaseModel):
    niche: List[NicheScore] = Field(default_factory=list)


class AggregateResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    neutral: NeutralPosterior
    p_aware: Optional[float] = None
    evidence: List[Evidence] = Field(default_factory=list)
    excluded_by_critic: int = 0
    off_topic: int = 0
    niche_boosted: int = 0
