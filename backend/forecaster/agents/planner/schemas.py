from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


MAX_SEARCH_SEEDS = 20
MAX_ADJACENT_SEEDS = 12
MAX_SUBCLAIMS = 10


class Recency(BaseModel):
    needed: bool = False
    start_date: Optional[str] = Field(
        None, description="ISO date (YYYY-MM-DD) used as search start date"
    )


class ResearchPlan(BaseModel):
    subclaims: List[str] = Field(..., min_length=2, description="Causal pathways to the outcome")
    key_variables: List[str] = Field(default_factory=list, description="Leading indicators to monitor")
    search_seeds: List[str] = Field(..., min_length=1, description="Search queries targeting causal factors")
    decision_criteria: List[str] = Field(default_factory=list)
    recency: Recency = Field(default_factory=Recency)
    adjacent_event_types: List[str] = Field(default_factory=list)
    adjacent_seeds: List[str] = Field(default_factory=list)

    @field_validator("subclaims")
    @classmethod
    def _cap_subclaims(cls, v: List[str]) -> List[str]:
        return v[:MAX_SUBCLAIMS]

    @field_validator("search_seeds")
    @classmethod
    def _cap_seeds(cls, v: List[str]) -> List[str]:
        return [s for s in v if s.strip()][:MAX_SEARCH_SEEDS]

    @field_validator("adjacent_seeds")
    @classmethod
    def _cap_adjacent(cls, v: List[str]) -> List[str]:
        return [s for s in v if s.strip()][:MAX_ADJACENT_SEEDS]
