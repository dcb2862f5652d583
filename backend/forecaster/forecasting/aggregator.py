"""
Evidence-only posterior and market blending.

``aggregate_neutral`` never sees a market price. ``blend_market`` only
accepts a finished ``NeutralPosterior``, so the market-aware estimate can
only be derived from a posterior that is already fixed.
"""

from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from forecaster.forecasting.clusters import (
    build_cluster,
    cluster_contribution,
    cluster_evidence,
)
from forecaster.forecasting.logodds import clamp, current_log_lr, logit, sigmoid
from forecaster.schemas.evidence import ClusterMeta, Evidence, InfluenceItem
from forecaster.schemas.market import MarketSnapshot


DEFAULT_ALPHA = 0.1

MarketFn = Callable[[str], Awaitable[MarketSnapshot]]


class NeutralPosterior(BaseModel):
    """Frozen evidence-only result."""
    model_config = ConfigDict(frozen=True)

    p0: float
    p_neutral: float
    log_odds: float
    influence: Tuple[InfluenceItem, ...] = ()
    clusters: Tuple[ClusterMeta, ...] = ()


def aggregate_neutral(
    p0: float,
    evidence: List[Evidence],
    rho_by_cluster: Optional[Dict[str, float]] = None,
    default_rho: float = 0.5,
) -> NeutralPosterior:
    """
    logit(p_neutral) = logit(p0) + sum over clusters of m_eff * mean_llr

    Influence for an item is the change in p_neutral when that item alone is
    removed and its cluster re-discounted.
    """
    clustered = cluster_evidence(evidence, rho_by_cluster, default_rho)

    prior_log_odds = logit(p0)
    contributions = [cluster_contribution(meta) for meta, _ in clustered]
    total = prior_log_odds + sum(contributions)
    p_neutral = sigmoid(total)

    influence: List[InfluenceItem] = []
    for (meta, members), contribution in zip(clustered, contributions):
        for i, e in enumerate(members):
            rest = members[:i] + members[i + 1:]
            reduced = (
                cluster_contribution(build_cluster(meta.cluster_id, rest, meta.rho))
                if rest else 0.0
            )
            p_without = sigmoid(total - contribution + reduced)
            influence.append(
                InfluenceItem(
                    evidence_id=e.id,
                    log_lr=current_log_lr(e),
                    delta_pp=p_neutral - p_without,
                )
            )

    influence.sort(key=lambda item: abs(item.delta_pp), reverse=True)

    return NeutralPosterior(
        p0=p0,
        p_neutral=p_neutral,
        log_odds=total,
        influence=tuple(influence),
        clusters=tuple(meta for meta, _ in clustered),
    )


def blend_market(
    neutral: NeutralPosterior,
    market_probability: float,
    alpha: float = DEFAULT_ALPHA,
) -> float:
    """p_aware = alpha * market + (1 - alpha) * p_neutral"""
    alpha = clamp(alpha, 0.0, 1.0)
    market_probability = clamp(market_probability, 0.0, 1.0)
    return alpha * market_probability + (1.0 - alpha) * neutral.p_neutral


async def market_aware_probability(
    neutral: NeutralPosterior,
    question: str,
    market_fn: Optional[MarketFn],
    alpha: float = DEFAULT_ALPHA,
) -> Optional[float]:
    """Consult the market only once the neutral posterior exists."""
    if market_fn is None:
        return None
    snapshot = await market_fn(question)
    return blend_market(neutral, snapshot.probability, alpha)
