from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


MAX_BATCH_ITEMS = 10

ResearchSide = Literal["FOR", "AGAINST", "NEUTRAL", "BOTH", "ADJACENT"]


class EvidenceDraft(BaseModel):
    """Evidence item as produced by the model, before ids and normalization."""
    claim: str = Field(..., min_length=1, description="Specific factual claim or finding")
    polarity: int = Field(0, description="1 supports the outcome, -1 contradicts it, 0 neutral")
    type: Literal["A", "B", "C", "D"] = Field(
        ..., description="A=primary data, B=high-quality secondary, C=standard secondary, D=weak/speculative"
    )
    published_at: Optional[str] = Field(None, description="Publication date, YYYY-MM-DD or ISO")
    urls: List[str] = Field(default_factory=list, description="Source URLs taken from the search results")
    origin_id: str = Field("unknown", description="Source identifier for deduplication")
    first_report: bool = False
    verifiability: float = Field(0.5, description="0-1")
    corroborations_indep: int = Field(0, description="Independent corroborations")
    consistency: float = Field(0.5, description="0-1")
    pathway: Optional[str] = Field(None, description="Causal catalyst category for adjacent signals")
    connection_strength: Optional[float] = Field(None, description="0-1 strength of linkage to the outcome")

    @field_validator("polarity", mode="before")
    @classmethod
    def _coerce_polarity(cls, v):
        try:
            v = int(float(v))
        except (TypeError, ValueError):
            return 0
        return max(-1, min(1, v))

    @field_validator("verifiability", "consistency", mode="before")
    @classmethod
    def _clamp_unit(cls, v):
        try:
            v = float(v)
        except (TypeError, ValueError):
            return 0.5
        return max(0.0, min(1.0, v))

    @field_validator("connection_strength", mode="before")
    @classmethod
    def _clamp_strength(cls, v):
        if v is None:
            return None
        try:
            v = float(v)
        except (TypeError, ValueError):
            return None
        return max(0.0, min(1.0, v))

    @field_validator("corroborations_indep", mode="before")
    @classmethod
    def _non_negative(cls, v):
        try:
            return max(0, int(v))
        except (TypeError, ValueError):
            return 0


class EvidenceBatch(BaseModel):
    items: List[EvidenceDraft] = Field(default_factory=list)

    @field_validator("items")
    @classmethod
    def _cap_items(cls, v: List[EvidenceDraft]) -> List[EvidenceDraft]:
        return v[:MAX_BATCH_ITEMS]


class FindingsSummary(BaseModel):
    summary: str = Field(..., description="Compressed bullet-list digest of the findings")
