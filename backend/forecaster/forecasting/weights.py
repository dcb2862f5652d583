"""
Multiplicative logLR adjustments applied during aggregation.

Each stage reads the item's current logLR, scales it and re-clamps it to
the tier cap, storing the result in ``log_lr_hint``.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from forecaster.forecasting.logodds import clamp, clamp_to_cap, current_log_lr
from forecaster.schemas.evidence import Evidence


# -----------------------------
# Recency
# -----------------------------

RECENCY_BUCKETS = [
    (30, 1.35),
    (180, 1.20),
    (365, 0.95),
]
STALE_MULTIPLIER = 0.85


def parse_published_at(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO date or timestamp; naive values are taken as UTC."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def age_in_days(published_at: Optional[str], now: datetime) -> Optional[float]:
    published = parse_published_at(published_at)
    if published is None:
        return None
    return max(0.0, (now - published).total_seconds() / 86400.0)


def recency_multiplier(published_at: Optional[str], now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    days = age_in_days(published_at, now)
    if days is None:
        return STALE_MULTIPLIER
    for max_days, multiplier in RECENCY_BUCKETS:
        if days <= max_days:
            return multiplier
    return STALE_MULTIPLIER


def apply_recency(items: List[Evidence], now: Optional[datetime] = None) -> List[Evidence]:
    now = now or datetime.now(timezone.utc)
    out = []
    for e in items:
        hinted = clamp_to_cap(current_log_lr(e) * recency_multiplier(e.published_at, now), e.type)
        out.append(e.model_copy(update={"log_lr_hint": hinted}))
    return out


# -----------------------------
# Causal pathway
# -----------------------------

# Checked in order; first keyword group found in the label wins
PATHWAY_BOOSTS = [
    (("platform", "policy", "distribution"), 0.30),
    (("release", "tour", "product"), 0.30),
    (("viral",), 0.20),
    (("award", "media"), 0.15),
    (("regulatory", "legal"), 0.25),
    (("macro", "geopolitical"), 0.20),
]
UNKNOWN_PATHWAY_BOOST = 0.10


def pathway_boost(pathway: Optional[str]) -> float:
    if not pathway or not pathway.strip():
        return 0.0
    key = pathway.lower()
    for keywords, boost in PATHWAY_BOOSTS:
        if any(k in key for k in keywords):
            return boost
    return UNKNOWN_PATHWAY_BOOST


def apply_pathway(items: List[Evidence]) -> List[Evidence]:
    out = []
    for e in items:
        strength = clamp(e.connection_strength, 0.0, 1.0) if e.connection_strength is not None else 0.0
        boost = pathway_boost(e.pathway)
        if strength <= 0 or boost <= 0:
            out.append(e)
            continue
        hinted = clamp_to_cap(current_log_lr(e) * (1.0 + boost * strength), e.type)
        out.append(e.model_copy(update={"log_lr_hint": hinted}))
    return out


# -----------------------------
# Niche authority
# -----------------------------

# Lower tiers gain more from a credible specialist source; A is never boosted
NICHE_COEFFICIENTS = {
    "B": 0.20,
    "C": 0.35,
    "D": 0.50,
}


def apply_niche_authority(items: List[Evidence], authority: Dict[str, float]) -> List[Evidence]:
    out = []
    for e in items:
        score = clamp(authority.get(e.id, 0.0), 0.0, 1.0)
        coefficient = NICHE_COEFFICIENTS.get(e.type)
        if coefficient is None or score <= 0:
            out.append(e)
            continue
        hinted = clamp_to_cap(current_log_lr(e) * (1.0 + coefficient * score), e.type)
        out.append(e.model_copy(update={"log_lr_hint": hinted}))
    return out
