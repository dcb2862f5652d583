"""
Progress sinks.

The orchestrator reports every state transition to a ProgressSink. Sinks
are best-effort: a failing sink is logged and never interrupts a run.
"""

import asyncio
from typing import Any, Dict, List, Optional, Protocol

from forecaster.logging import logger
from forecaster.schemas.events import ProgressEvent


class ProgressSink(Protocol):
    def emit(self, event: ProgressEvent) -> None: ...


class BestEffortSink:
    """Wraps a sink so that its failures are swallowed."""

    def __init__(self, inner: Optional[ProgressSink] = None):
        self.inner = inner

    def emit(self, event: ProgressEvent) -> None:
        if self.inner is None:
            return
        try:
            self.inner.emit(event)
        except Exception as e:
            logger.warning(
                "PROGRESS_SINK_FAILED",
                extra={"event_type": event.type, "step": event.step, "error": str(e)},
            )

    def progress(self, step: str, message: Optional[str] = None, **details: Any) -> None:
        self.emit(
            ProgressEvent(
                type="progress",
                step=step,
                message=message,
                details=details or None,
            )
        )


class RecordingSink:
    """Keeps every event in order."""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    def emit(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def steps(self) -> List[str]:
        return [e.step for e in self.events if e.step]

    def details_for(self, step: str) -> Dict[str, Any]:
        for e in self.events:
            if e.step == step:
                return e.details or {}
        return {}


class QueueSink:
    """Feeds an asyncio.Queue drained by the SSE response."""

    def __init__(self, queue: "asyncio.Queue[ProgressEvent]"):
        self.queue = queue

    def emit(self, event: ProgressEvent) -> None:
        self.queue.put_nowait(event)
