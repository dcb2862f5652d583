"""
Correlation-aware clustering of evidence by origin.

Items sharing an origin are treated as one cluster with an assumed pairwise
correlation rho. The cluster counts as m_eff independent items:

    m_eff = n / (1 + (n - 1) * rho)        1 <= m_eff <= n
"""

from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from forecaster.forecasting.logodds import clamp, current_log_lr
from forecaster.schemas.evidence import ClusterMeta, Evidence


def effective_sample_size(n: int, rho: float) -> float:
    if n <= 0:
        return 0.0
    rho = clamp(rho, 0.0, 1.0)
    m_eff = n / (1.0 + (n - 1) * rho)
    return clamp(m_eff, 1.0, float(n))


def cluster_key(e: Evidence) -> str:
    return e.origin_id or "unknown"


def group_by_origin(items: List[Evidence]) -> "OrderedDict[str, List[Evidence]]":
    groups: "OrderedDict[str, List[Evidence]]" = OrderedDict()
    for e in items:
        groups.setdefault(cluster_key(e), []).append(e)
    return groups


def build_cluster(
    cluster_id: str,
    members: List[Evidence],
    rho: float,
) -> ClusterMeta:
    llrs = [current_log_lr(e) for e in members]
    return ClusterMeta(
        cluster_id=cluster_id,
        size=len(members),
        rho=clamp(rho, 0.0, 1.0),
        m_eff=effective_sample_size(len(members), rho),
        mean_llr=sum(llrs) / len(llrs),
    )


def cluster_evidence(
    items: List[Evidence],
    rho_by_cluster: Optional[Dict[str, float]] = None,
    default_rho: float = 0.5,
) -> List[Tuple[ClusterMeta, List[Evidence]]]:
    """Cluster metadata paired with member items, in first-seen order."""
    rho_by_cluster = rho_by_cluster or {}
    return [
        (build_cluster(cid, members, rho_by_cluster.get(cid, default_rho)), members)
        for cid, members in group_by_origin(items).items()
    ]


def cluster_contribution(meta: ClusterMeta) -> float:
    """Discounted log-odds contributed by a whole cluster."""
    return meta.m_eff * meta.mean_llr
