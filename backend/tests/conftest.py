"""
Shared pytest fixtures for the forecaster test suite.

Provides:
- Fake language model / search / market collaborators
- Evidence and market payload factories
- Pipeline dependencies wired to the fakes
"""

import pytest
from datetime import datetime, timezone, timedelta
from typing import Any, Callable, Dict, List, Optional
import fakeredis

# Add backend to path
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError

from forecaster.agents.deps import PipelineDeps
from forecaster.config import Settings
from forecaster.errors import ProviderError
from forecaster.llm.capability import Ok, ProviderFailure, SchemaMismatch, TaskSpec
from forecaster.schemas.evidence import Evidence
from forecaster.schemas.market import MarketFacts, MarketPayload, OutcomeQuote
from forecaster.services.progress import BestEffortSink, RecordingSink
from forecaster.services.search import SearchContext, SearchResult


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
MARKET_URL = "https://polymarket.com/event/will-the-fed-cut-rates-in-june"


def days_ago(days: int) -> str:
    return (NOW - timedelta(days=days)).isoformat()


# ============================================================================
# Fake collaborators
# ============================================================================

class FakeLanguageModel:
    """
    Scripted LanguageModel.

    ``responses`` maps a task name (or a task-name prefix) to a dict, a
    callable taking the TaskSpec, or an Exception. Unscripted tasks fail
    with ProviderFailure, which exercises every degradation path.
    """

    def __init__(self, responses: Optional[Dict[str, Any]] = None):
        self.responses = responses or {}
        self.calls: List[TaskSpec] = []

    def _lookup(self, name: str):
        if name in self.responses:
            return self.responses[name]
        for key in sorted(self.responses, key=len, reverse=True):
            if name.startswith(key):
                return self.responses[key]
        return None

    async def generate_structured(self, task: TaskSpec, schema):
        self.calls.append(task)
        scripted = self._lookup(task.name)
        if scripted is None:
            return ProviderFailure(error=f"{task.name}: not scripted")
        if callable(scripted):
            scripted = scripted(task)
        if isinstance(scripted, Exception):
            return ProviderFailure(error=str(scripted))
        try:
            return Ok(schema.model_validate(scripted))
        except ValidationError as e:
            return SchemaMismatch(error=str(e), raw=str(scripted))

    def task_names(self) -> List[str]:
        return [t.name for t in self.calls]


class FakeSearchProvider:
    """Returns the same results for every query unless told to fail."""

    def __init__(self, results: Optional[List[SearchResult]] = None, fail: bool = False):
        self.results = results or []
        self.fail = fail
        self.queries: List[str] = []
        self.contexts: List[SearchContext] = []

    async def search(self, query: str, context: SearchContext, search_type: str = "all"):
        self.queries.append(query)
        self.contexts.append(context)
        if self.fail:
            raise ProviderError("search unavailable")
        return list(self.results)


class FakeMarketFetcher:

    def __init__(self, payload: Optional[MarketPayload] = None, error: Optional[Exception] = None):
        self.payload = payload
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def fetch(self, url, history_interval="1d", with_books=True, with_trades=False):
        self.calls.append({
            "url": url,
            "history_interval": history_interval,
            "with_books": with_books,
            "with_trades": with_trades,
        })
        if self.error is not None:
            raise self.error
        return self.payload


# ============================================================================
# Factories
# ============================================================================

@pytest.fixture
def make_evidence() -> Callable[..., Evidence]:
    """Evidence factory with sensible defaults."""
    counter = {"n": 0}

    def _make(**overrides) -> Evidence:
        counter["n"] += 1
        data = {
            "id": f"e{counter['n']}",
            "claim": f"Claim number {counter['n']}",
            "polarity": 1,
            "type": "B",
            "urls": [f"https://source{counter['n']}.example.org/story"],
            "origin_id": f"source{counter['n']}.example.org",
            "published_at": days_ago(10),
            "verifiability": 0.8,
            "consistency": 0.8,
            "corroborations_indep": 2,
        }
        data.update(overrides)
        return Evidence(**data)

    return _make


@pytest.fixture
def market_payload() -> MarketPayload:
    return MarketPayload(
        market_facts=MarketFacts(
            question="Will the Fed cut rates in June 2025?",
            volume=2_500_000.0,
            liquidity=150_000.0,
            close_time=(NOW + timedelta(days=60)).isoformat(),
            resolution_source="https://www.federalreserve.gov",
            token_map={"Yes": "tok-yes", "No": "tok-no"},
        ),
        market_state_now=[
            OutcomeQuote(token_id="tok-yes", outcome="Yes", bid=0.34, ask=0.36, mid=0.35),
            OutcomeQuote(token_id="tok-no", outcome="No", bid=0.64, ask=0.66, mid=0.65),
        ],
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(search_api_key="test-key")


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_deps(settings, market_payload, recording_sink):
    """Build PipelineDeps around fakes; override any collaborator by keyword."""

    def _make(
        llm: Optional[FakeLanguageModel] = None,
        search: Optional[FakeSearchProvider] = None,
        market: Optional[FakeMarketFetcher] = None,
        settings_override: Optional[Settings] = None,
    ) -> PipelineDeps:
        return PipelineDeps(
            settings=settings_override or settings,
            llm=llm or FakeLanguageModel(),
            search=search or FakeSearchProvider(),
            market=market or FakeMarketFetcher(market_payload),
            sink=BestEffortSink(recording_sink),
            search_context=SearchContext(api_key="test-key", session_id="test-run"),
            clock=lambda: NOW,
        )

    return _make


# ============================================================================
# Mock Redis Fixtures
# ============================================================================

@pytest.fixture
def mock_redis() -> fakeredis.FakeRedis:
    """
    Create a fake Redis instance for testing.
    Behaves like real Redis but runs in-memory.
    """
    return fakeredis.FakeRedis(decode_responses=True)


# ============================================================================
# Cleanup Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def cleanup_singletons():
    """
    Reset singleton instances between tests.
    """
    yield

    from forecaster.services import store
    store._forecast_store = None

    from forecaster.config import get_settings
    get_settings.cache_clear()
