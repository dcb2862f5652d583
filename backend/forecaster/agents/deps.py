"""
Collaborators shared by every node of a forecast run.
"""

import contextlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from langchain_core.tracers.context import tracing_v2_enabled

from forecaster.config import Settings
from forecaster.llm.capability import LanguageModel
from forecaster.services.market import MarketDataFetcher
from forecaster.services.progress import BestEffortSink
from forecaster.services.search import SearchContext, SearchProvider


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PipelineDeps:
    settings: Settings
    llm: LanguageModel
    search: SearchProvider
    market: MarketDataFetcher
    sink: BestEffortSink = field(default_factory=BestEffortSink)
    search_context: SearchContext = field(default_factory=SearchContext)
    clock: Callable[[], datetime] = utc_now

    def tracing(self):
        """LangSmith tracing around a node, when enabled."""
        if self.settings.langsmith_tracing:
            return tracing_v2_enabled(project_name=self.settings.langsmith_project)
        return contextlib.nullcontext()

    def progress(self, step: str, message: Optional[str] = None, **details) -> None:
        self.sink.progress(step, message, **details)
