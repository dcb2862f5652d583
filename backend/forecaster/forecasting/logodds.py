"""
Log-odds primitives and the per-item evidence strength function.

Every transformation of an item's logLR must end with ``clamp_to_cap`` so
that |logLR| never exceeds the cap of the item's quality tier.
"""

import math

from forecaster.schemas.evidence import Evidence


# Maximum |logLR| per source-quality tier
TYPE_CAPS = {
    "A": 2.0,
    "B": 1.6,
    "C": 0.8,
    "D": 0.3,
}

# Corroboration saturates quickly; beyond a handful of sources it adds little
CORROBORATION_FLOOR = 0.6
CORROBORATION_SCALE = 2.0

_EPS = 1e-9


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def logit(p: float) -> float:
    p = clamp(p, _EPS, 1.0 - _EPS)
    return math.log(p / (1.0 - p))


def sigmoid(x: float) -> float:
    if x >= 0:
        z = math.exp(-x)
        return 1.0 / (1.0 + z)
    z = math.exp(x)
    return z / (1.0 + z)


def clamp_to_cap(value: float, evidence_type: str) -> float:
    cap = TYPE_CAPS[evidence_type]
    return clamp(value, -cap, cap)


def corroboration_factor(count: int) -> float:
    """0.6 with no corroboration, approaching 1.0 as independent sources accrue."""
    count = max(0, count)
    return CORROBORATION_FLOOR + (1.0 - CORROBORATION_FLOOR) * (
        1.0 - math.exp(-count / CORROBORATION_SCALE)
    )


def evidence_log_lr(e: Evidence) -> float:
    """
    Base signed logLR of a single evidence item.

    magnitude = cap * verifiability * (0.5 + 0.5 * consistency) * corroboration

    Each factor is in [0, 1], so the result never exceeds the tier cap, and
    the magnitude is non-decreasing in verifiability, consistency and the
    corroboration count. Neutral items (polarity 0) carry no weight.
    """
    if e.polarity == 0:
        return 0.0

    cap = TYPE_CAPS[e.type]
    magnitude = (
        cap
        * e.verifiability
        * (0.5 + 0.5 * e.consistency)
        * corroboration_factor(e.corroborations_indep)
    )
    return clamp_to_cap(e.polarity * magnitude, e.type)


def current_log_lr(e: Evidence) -> float:
    """The adjusted logLR if a stage has set one, otherwise the base value."""
    if e.log_lr_hint is not None:
        return clamp_to_cap(e.log_lr_hint, e.type)
    return evidence_log_lr(e)
