"""
Versioned storage records for ForecastCards.

Older rows were written in several shapes (top-level summary columns,
camelCase cards, probabilities nested under ``response``). They are
normalized here, once, when read from storage.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from forecaster.schemas.evidence import ForecastCard


CURRENT_RECORD_VERSION = 2


class ForecastRecord(BaseModel):
    version: int = CURRENT_RECORD_VERSION
    forecast_id: str
    market_url: Optional[str] = None
    card: ForecastCard


_CAMEL_TO_SNAKE = {
    "pNeutral": "p_neutral",
    "pAware": "p_aware",
    "markdownReport": "markdown_report",
    "evidenceId": "evidence_id",
    "logLR": "log_lr",
    "deltaPP": "delta_pp",
    "clusterId": "cluster_id",
    "mEff": "m_eff",
    "meanLLR": "mean_llr",
}


def _snake_keys(obj: Dict[str, Any]) -> Dict[str, Any]:
    return {_CAMEL_TO_SNAKE.get(k, k): v for k, v in obj.items()}


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _migrate_v1(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Legacy rows: summary columns at top level, camelCase card stored under
    ``forecast_card`` and sometimes a ``response`` block carrying the final
    probabilities, report and drivers.
    """
    raw_card = _snake_keys(row.get("forecast_card") or {})
    response = raw_card.get("response") or {}
    final_probs = _snake_keys(response.get("finalProbabilities") or {})
    market = raw_card.get("market") or {}

    card = {
        "question": _first_present(
            row.get("market_question"),
            raw_card.get("question"),
            market.get("question"),
        ) or "",
        "p0": _first_present(row.get("p0"), raw_card.get("p0"), final_probs.get("p0"), 0.5),
        "p_neutral": _first_present(
            row.get("p_neutral"),
            raw_card.get("p_neutral"),
            final_probs.get("p_neutral"),
            0.5,
        ),
        "p_aware": _first_present(
            row.get("p_aware"),
            raw_card.get("p_aware"),
            final_probs.get("p_aware"),
        ),
        "alpha": raw_card.get("alpha", 0.1),
        "drivers": _first_present(row.get("drivers"), raw_card.get("drivers"), response.get("drivers")) or [],
        "influence": [_snake_keys(i) for i in raw_card.get("influence") or []],
        "clusters": [_snake_keys(c) for c in raw_card.get("clusters") or []],
        "provenance": raw_card.get("provenance") or [],
        "markdown_report": _first_present(
            row.get("markdown_report"),
            raw_card.get("markdown_report"),
            response.get("markdownReport"),
        ) or "",
    }

    return {
        "version": CURRENT_RECORD_VERSION,
        "forecast_id": str(row.get("id") or row.get("forecast_id") or ""),
        "market_url": row.get("market_url"),
        "card": card,
    }


def migrate_record(raw: Dict[str, Any]) -> ForecastRecord:
    """Normalize any stored shape into the current ForecastRecord."""
    version = raw.get("version")
    if version is None or version < CURRENT_RECORD_VERSION:
        raw = _migrate_v1(raw)
    elif version > CURRENT_RECORD_VERSION:
        raise ValueError(f"Unsupported forecast record version: {version}")
    return ForecastRecord.model_validate(raw)
