"""
Progress / streaming protocol.

Each pipeline transition becomes one ProgressEvent. A run opens with
``connected`` and ends with exactly one ``complete`` or ``error``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from forecaster.schemas.evidence import ForecastCard


EventType = Literal["connected", "progress", "complete", "error"]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProgressEvent(BaseModel):
    type: EventType
    step: Optional[str] = None
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    forecast: Optional[ForecastCard] = None
    error: Optional[str] = None
    session_id: Optional[str] = None
    timestamp: str = Field(default_factory=utc_now_iso)

    @property
    def is_terminal(self) -> bool:
        return self.type in ("complete", "error")

    def to_sse(self) -> str:
        """Server-Sent Events frame."""
        return f"data: {self.model_dump_json(exclude_none=True)}\n\n"
