from typing import Dict, List, Literal

from pydantic import BaseModel, Field, field_validator


MAX_FOLLOW_UPS = 10

Side = Literal["FOR", "AGAINST", "NEUTRAL", "BOTH"]


class FollowUpSearch(BaseModel):
    query: str = Field(..., min_length=1, description="Specific search query to fill a gap")
    rationale: str = ""
    side: Side


class Critique(BaseModel):
    missing: List[str] = Field(default_factory=list, description="Missed disconfirming evidence or failure modes")
    duplication_flags: List[str] = Field(default_factory=list, description="Evidence ids or origin fragments suspected of double counting")
    data_concerns: List[str] = Field(default_factory=list, description="Measurement or selection bias risks")
    follow_up_searches: List[FollowUpSearch] = Field(default_factory=list)
    correlation_adjustments: Dict[str, float] = Field(default_factory=dict, description="origin id -> correlation in [0, 1]")
    confidence_issues: List[str] = Field(default_factory=list)

    @field_validator("follow_up_searches")
    @classmethod
    def _cap_follow_ups(cls, v: List[FollowUpSearch]) -> List[FollowUpSearch]:
        return v[:MAX_FOLLOW_UPS]

    @field_validator("correlation_adjustments")
    @classmethod
    def _clamp_rho(cls, v: Dict[str, float]) -> Dict[str, float]:
        return {k: max(0.0, min(1.0, float(rho))) for k, rho in v.items()}

    @classmethod
    def empty(cls) -> "Critique":
        return cls()
