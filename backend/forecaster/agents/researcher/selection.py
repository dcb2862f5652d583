"""
Freshness filters applied to every research batch.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List

from forecaster.forecasting.weights import age_in_days
from forecaster.schemas.evidence import Evidence


@dataclass(frozen=True)
class SelectionLimits:
    max_items: int
    min_items: int
    max_old_fraction: float


SIDE_LIMITS = SelectionLimits(max_items=8, min_items=4, max_old_fraction=0.25)
ADJACENT_LIMITS = SelectionLimits(max_items=6, min_items=3, max_old_fraction=0.25)
FOLLOW_UP_LIMITS = SelectionLimits(max_items=6, min_items=2, max_old_fraction=0.25)


def drop_stale(items: List[Evidence], max_age_days: int, now: datetime) -> List[Evidence]:
    """Drop dated items older than ``max_age_days``; undated items stay."""
    kept = []
    for e in items:
        days = age_in_days(e.published_at, now)
        if days is not None and days > max_age_days:
            continue
        kept.append(e)
    return kept


def fresh_first(items: List[Evidence], limits: SelectionLimits, now: datetime) -> List[Evidence]:
    """
    Keep at most ``max_items``: items from the last 30 days first, then the
    last 180 days, then a bounded share of older or undated items. If that
    leaves fewer than ``min_items``, top up from the remaining older items.
    """
    aged = [(age_in_days(e.published_at, now), i, e) for i, e in enumerate(items)]
    aged.sort(key=lambda t: (t[0] is None, t[0] if t[0] is not None else 0.0, t[1]))

    fresh30 = [e for d, _, e in aged if d is not None and d <= 30]
    fresh180 = [e for d, _, e in aged if d is not None and 30 < d <= 180]
    older = [e for d, _, e in aged if d is None or d > 180]

    out: List[Evidence] = []
    for e in fresh30 + fresh180:
        if len(out) >= limits.max_items:
            break
        out.append(e)

    old_cap = max(1, int(limits.max_items * limits.max_old_fraction))
    old_added = 0
    for e in older:
        if len(out) >= limits.max_items or old_added >= old_cap:
            break
        out.append(e)
        old_added += 1

    for e in older[old_added:]:
        if len(out) >= limits.min_items:
            break
        out.append(e)

    return out
