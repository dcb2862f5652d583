"""
Evidence and forecast card models.

Evidence items are created by the research agents, rewritten only by the
aggregation stage (``log_lr_hint``) and frozen into a ForecastCard once
per pipeline run.
"""

from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


EvidenceType = Literal["A", "B", "C", "D"]
Polarity = Literal[-1, 0, 1]


class Evidence(BaseModel):
    """One atomic claim gathered during research."""
    id: str
    claim: str
    polarity: Polarity
    type: EvidenceType
    urls: List[str] = Field(default_factory=list)
    origin_id: str = "unknown"
    published_at: Optional[str] = None
    first_report: bool = False

    verifiability: float = Field(0.5, ge=0.0, le=1.0)
    consistency: float = Field(0.5, ge=0.0, le=1.0)
    corroborations_indep: int = Field(0, ge=0)

    # Adjacent-signal metadata
    pathway: Optional[str] = None
    connection_strength: Optional[float] = Field(None, ge=0.0, le=1.0)

    # Set by the aggregation stage only
    log_lr_hint: Optional[float] = None

    def brief(self) -> dict:
        """Compact view used in progress events."""
        return {
            "id": self.id,
            "claim": self.claim,
            "type": self.type,
            "polarity": self.polarity,
            "urls": self.urls,
            "pathway": self.pathway,
            "connection_strength": self.connection_strength,
        }


class ClusterMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    cluster_id: str
    size: int = Field(..., ge=1)
    rho: float = Field(..., ge=0.0, le=1.0)
    m_eff: float = Field(..., ge=1.0)
    mean_llr: float


class InfluenceItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    evidence_id: str
    log_lr: float
    # Leave-one-out shift of the evidence-only posterior, as a probability
    # difference (0.05 == 5 percentage points).
    delta_pp: float


class ForecastCard(BaseModel):
    """Write-once result of a pipeline run."""
    model_config = ConfigDict(frozen=True)

    question: str
    p0: float = Field(..., ge=0.0, le=1.0)
    p_neutral: float = Field(..., ge=0.0, le=1.0)
    p_aware: Optional[float] = Field(None, ge=0.0, le=1.0)
    alpha: float = 0.1
    drivers: Tuple[str, ...] = ()
    influence: Tuple[InfluenceItem, ...] = ()
    clusters: Tuple[ClusterMeta, ...] = ()
    provenance: Tuple[str, ...] = ()
    markdown_report: str = ""


def make_forecast_card(
    question: str,
    p0: float,
    p_neutral: float,
    p_aware: Optional[float],
    alpha: float,
    drivers: List[str],
    influence: List[InfluenceItem],
    clusters: List[ClusterMeta],
    provenance: List[str],
    markdown_report: str,
) -> ForecastCard:
    """Assemble the card, deduplicating provenance in first-seen order."""
    seen = set()
    deduped = []
    for url in provenance:
        if url and url not in seen:
            seen.add(url)
            deduped.append(url)

    return ForecastCard(
        question=question,
        p0=p0,
        p_neutral=p_neutral,
        p_aware=p_aware,
        alpha=alpha,
        drivers=tuple(drivers),
        influence=tuple(influence),
        clusters=tuple(clusters),
        provenance=tuple(deduped),
        markdown_report=markdown_report,
    )
