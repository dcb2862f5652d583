"""
Unit tests for research selection and the researcher agent.

Tests cover:
- Stale filtering and fresh-first selection
- URL restriction to search results
- Id prefixes and forced polarity per side
- Fail-closed research tasks, including malformed search rows
- Run-level dedup when merging pools
"""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeLanguageModel, FakeSearchProvider, NOW, days_ago
from forecaster.agents.critic.schemas import FollowUpSearch
from forecaster.agents.planner.schemas import ResearchPlan
from forecaster.agents.researcher.agent import (
    EvidencePools,
    ResearcherAgent,
    merge_pools,
    split_by_polarity,
)
from forecaster.agents.researcher.selection import (
    ADJACENT_LIMITS,
    SIDE_LIMITS,
    SelectionLimits,
    drop_stale,
    fresh_first,
)
from forecaster.config import Settings
from forecaster.errors import EmptyResult
from forecaster.services.search import SearchContext, SearchResult, ValyuSearchProvider


CONTEXT = SearchContext(api_key="test-key", session_id="test")

PLAN = ResearchPlan(
    subclaims=["Inflation cools", "Labor market softens"],
    search_seeds=["fed june cut", "cpi may 2025"],
    adjacent_event_types=["macro shocks"],
    adjacent_seeds=["tariff shock"],
)

RESULTS = [
    SearchResult(title="CPI report", url="https://www.bls.gov/cpi/may", content="CPI fell", published_date="2025-05-28"),
    SearchResult(title="Fed holds", url="https://reuters.com/fed-hold", content="Fed holds", published_date="2025-05-20"),
]


def _draft(claim, urls, polarity=1, **extra):
    data = {
        "claim": claim,
        "polarity": polarity,
        "type": "B",
        "urls": urls,
        "published_at": days_ago(5),
        "verifiability": 0.8,
        "consistency": 0.7,
        "corroborations_indep": 1,
    }
    data.update(extra)
    return data


def _researcher(llm, search=None, settings=None):
    return ResearcherAgent(llm, search or FakeSearchProvider(RESULTS), settings or Settings(), now=NOW)


class TestDropStale:
    """Tests for drop_stale()."""

    def test_drops_only_dated_old_items(self, make_evidence):
        fresh = make_evidence(published_at=days_ago(10))
        old = make_evidence(published_at=days_ago(800))
        undated = make_evidence(published_at=None)
        assert drop_stale([fresh, old, undated], 730, NOW) == [fresh, undated]

    def test_boundary_is_inclusive(self, make_evidence):
        edge = make_evidence(published_at=days_ago(730))
        assert drop_stale([edge], 730, NOW) == [edge]


class TestFreshFirst:
    """Tests for fresh_first()."""

    def test_old_items_bounded(self, make_evidence):
        fresh = [make_evidence(published_at=days_ago(d)) for d in (3, 10, 20)]
        recent = [make_evidence(published_at=days_ago(100))]
        old = [make_evidence(published_at=days_ago(300 + d)) for d in range(5)]

        out = fresh_first(old + recent + fresh, SIDE_LIMITS, NOW)

        # 8 * 0.25 -> at most 2 old items once the minimum is met
        assert out[:4] == fresh + recent
        assert out[4:] == old[:2]

    def test_tops_up_to_minimum(self, make_evidence):
        fresh = [make_evidence(published_at=days_ago(2))]
        old = [make_evidence(published_at=None) for _ in range(5)]
        out = fresh_first(old + fresh, SIDE_LIMITS, NOW)
        assert len(out) == SIDE_LIMITS.min_items
        assert out[0] == fresh[0]

    def test_never_exceeds_max(self, make_evidence):
        items = [make_evidence(published_at=days_ago(1)) for _ in range(12)]
        assert len(fresh_first(items, ADJACENT_LIMITS, NOW)) == ADJACENT_LIMITS.max_items

    def test_small_batches_keep_at_least_one_old(self, make_evidence):
        limits = SelectionLimits(max_items=2, min_items=1, max_old_fraction=0.25)
        fresh = make_evidence(published_at=days_ago(1))
        old = make_evidence(published_at=days_ago(400))
        assert fresh_first([old, fresh], limits, NOW) == [fresh, old]

    def test_newest_first_within_buckets(self, make_evidence):
        a = make_evidence(published_at=days_ago(25))
        b = make_evidence(published_at=days_ago(2))
        assert fresh_first([a, b], SIDE_LIMITS, NOW) == [b, a]


class TestResearchSide:
    """Tests for ResearcherAgent.research_side()."""

    def test_ids_polarity_and_url_restriction(self):
        llm = FakeLanguageModel({
            "evidence_pro": {"items": [
                _draft("CPI cooled", ["https://bls.gov/cpi/may/?utm_source=feed", "https://made-up.example/x"], polarity=-1),
                _draft("Futures price a cut", ["https://reuters.com/fed-hold"]),
            ]},
        })
        items = asyncio.run(_researcher(llm).research_side("Q?", PLAN, "FOR", CONTEXT))

        assert [e.id for e in items] == ["pro-1", "pro-2"]
        assert all(e.polarity == 1 for e in items)
        assert items[0].urls == ["https://bls.gov/cpi/may"]

    def test_against_side_prefix(self):
        llm = FakeLanguageModel({"evidence_con": {"items": [_draft("Fed signals patience", ["https://reuters.com/fed-hold"])]}})
        [item] = asyncio.run(_researcher(llm).research_side("Q?", PLAN, "AGAINST", CONTEXT))
        assert item.id == "con-1"
        assert item.polarity == -1

    def test_pathway_dropped_outside_adjacent(self):
        llm = FakeLanguageModel({"evidence_pro": {"items": [
            _draft("x", ["https://reuters.com/fed-hold"], pathway="macro", connection_strength=0.9),
        ]}})
        [item] = asyncio.run(_researcher(llm).research_side("Q?", PLAN, "FOR", CONTEXT))
        assert item.pathway is None
        assert item.connection_strength is None

    def test_extraction_failure_gives_empty(self):
        assert asyncio.run(_researcher(FakeLanguageModel()).research_side("Q?", PLAN, "FOR", CONTEXT)) == []

    def test_stale_items_dropped(self):
        llm = FakeLanguageModel({"evidence_pro": {"items": [
            _draft("ancient", ["https://reuters.com/fed-hold"], published_at=days_ago(900)),
            _draft("undated", ["https://bls.gov/cpi/may"], published_at=None),
        ]}})
        items = asyncio.run(_researcher(llm).research_side("Q?", PLAN, "FOR", CONTEXT))
        assert [e.claim for e in items] == ["undated"]

    def test_seeds_limited_by_setting(self):
        search = FakeSearchProvider(RESULTS)
        plan = PLAN.model_copy(update={"search_seeds": [f"seed {i}" for i in range(10)]})
        asyncio.run(_researcher(FakeLanguageModel(), search, Settings(seeds_per_side=3)).research_side("Q?", plan, "FOR", CONTEXT))
        assert search.queries == ["seed 0", "seed 1", "seed 2"]

    def test_summary_falls_back_to_truncation(self):
        llm = FakeLanguageModel()
        asyncio.run(_researcher(llm).research_side("Q?", PLAN, "FOR", CONTEXT))
        assert llm.task_names() == ["summarize_for", "evidence_pro"]


class TestResearchAdjacent:
    """Tests for ResearcherAgent.research_adjacent()."""

    def test_keeps_model_polarity_and_pathway(self):
        llm = FakeLanguageModel({"evidence_adjacent": {"items": [
            _draft("Tariff shock", ["https://reuters.com/fed-hold"], polarity=0, pathway="macro", connection_strength=0.4),
            _draft("Oil spike", ["https://bls.gov/cpi/may"], polarity=-1, pathway="geopolitical", connection_strength=0.6),
        ]}})
        items = asyncio.run(_researcher(llm).research_adjacent("Q?", PLAN, CONTEXT))
        assert [e.id for e in items] == ["adj-1", "adj-2"]
        assert [e.polarity for e in items] == [0, -1]
        assert items[0].pathway == "macro"
        assert items[1].connection_strength == pytest.approx(0.6)

    def test_no_seeds_no_search(self):
        search = FakeSearchProvider(RESULTS)
        plan = PLAN.model_copy(update={"adjacent_seeds": []})
        assert asyncio.run(_researcher(FakeLanguageModel(), search).research_adjacent("Q?", plan, CONTEXT)) == []
        assert search.queries == []


class TestFollowUp:
    """Tests for follow-up research."""

    def test_search_failure_raises_empty_result(self):
        llm = FakeLanguageModel({"evidence_follow_up": {"items": [_draft("x", ["https://reuters.com/fed-hold"])]}})
        researcher = _researcher(llm, FakeSearchProvider(fail=True))
        directive = FollowUpSearch(query="fed dissent", side="FOR")
        with pytest.raises(EmptyResult):
            asyncio.run(researcher.research_follow_up("Q?", directive, 1, CONTEXT))
        assert llm.calls == []

    def test_empty_directive_recovered_in_cycle(self):
        llm = FakeLanguageModel({
            "evidence_follow_up_1": {"items": []},
            "evidence_follow_up_2": {"items": [_draft("b", ["https://bls.gov/cpi/may"])]},
        })
        directives = [
            FollowUpSearch(query="one", side="FOR"),
            FollowUpSearch(query="two", side="AGAINST"),
        ]
        pools = asyncio.run(_researcher(llm).follow_up_cycle("Q?", directives, CONTEXT))
        assert pools.pro == []
        assert [e.id for e in pools.con] == ["fu2-1"]

    def test_both_side_is_neutral(self):
        llm = FakeLanguageModel({"evidence_follow_up": {"items": [_draft("Officials split", ["https://reuters.com/fed-hold"], polarity=1)]}})
        directives = [FollowUpSearch(query="fed officials split", side="BOTH")]
        pools = asyncio.run(_researcher(llm).follow_up_cycle("Q?", directives, CONTEXT))

        assert pools.pro == [] and pools.con == []
        [item] = pools.neutral
        assert item.id == "fu1-1"
        assert item.polarity == 0

    def test_neutral_side_is_neutral(self):
        llm = FakeLanguageModel({"evidence_follow_up": {"items": [_draft("Rate path unclear", ["https://reuters.com/fed-hold"], polarity=-1)]}})
        directives = [FollowUpSearch(query="fed rate path", side="NEUTRAL")]
        pools = asyncio.run(_researcher(llm).follow_up_cycle("Q?", directives, CONTEXT))

        assert pools.pro == [] and pools.con == []
        [item] = pools.neutral
        assert item.id == "fu1-1"
        assert item.polarity == 0

    def test_directive_index_in_prefix(self):
        llm = FakeLanguageModel({
            "evidence_follow_up_1": {"items": [_draft("a", ["https://reuters.com/fed-hold"])]},
            "evidence_follow_up_2": {"items": [_draft("b", ["https://bls.gov/cpi/may"])]},
        })
        directives = [
            FollowUpSearch(query="one", side="FOR"),
            FollowUpSearch(query="two", side="AGAINST"),
        ]
        pools = asyncio.run(_researcher(llm).follow_up_cycle("Q?", directives, CONTEXT))
        assert [e.id for e in pools.pro] == ["fu1-1"]
        assert [e.id for e in pools.con] == ["fu2-1"]
        assert pools.con[0].polarity == -1


class TestInitialCycle:
    """Tests for the parallel first research cycle."""

    def test_sides_fail_independently(self):
        llm = FakeLanguageModel({
            "evidence_con": {"items": [_draft("Fed patient", ["https://reuters.com/fed-hold"])]},
            "evidence_adjacent": {"items": [_draft("Tariffs", ["https://bls.gov/cpi/may"], polarity=0, pathway="macro")]},
        })
        pools = asyncio.run(_researcher(llm).initial_cycle("Q?", PLAN, CONTEXT))
        assert pools.pro == []
        assert [e.id for e in pools.con] == ["con-1"]
        assert [e.id for e in pools.neutral] == ["adj-1"]

    def test_malformed_search_rows_do_not_abort_cycle(self):
        """A bad provider row is dropped; the good rows still feed every side."""
        payload = {
            "success": True,
            "results": [
                {"title": ["not", "a", "string"], "url": "https://bad.example/x", "content": "?"},
                "not-a-row",
                {"title": "Fed holds", "url": "https://reuters.com/fed-hold", "content": "Fed holds", "publication_date": "2025-05-20"},
            ],
        }
        response = MagicMock()
        response.json.return_value = payload
        response.raise_for_status.return_value = None

        llm = FakeLanguageModel({
            "evidence_pro": {"items": [_draft("Futures price a cut", ["https://reuters.com/fed-hold"])]},
        })
        search = ValyuSearchProvider("https://search.test/v1/deepsearch", timeout=3)
        with patch("forecaster.services.search.requests.post", return_value=response):
            pools = asyncio.run(_researcher(llm, search).initial_cycle("Q?", PLAN, CONTEXT))

        assert [e.id for e in pools.pro] == ["pro-1"]
        assert pools.pro[0].urls == ["https://reuters.com/fed-hold"]

    def test_non_object_search_payload_is_recovered(self):
        response = MagicMock()
        response.json.return_value = ["unexpected"]
        response.raise_for_status.return_value = None

        search = ValyuSearchProvider("https://search.test/v1/deepsearch", timeout=3)
        with patch("forecaster.services.search.requests.post", return_value=response):
            pools = asyncio.run(_researcher(FakeLanguageModel(), search).initial_cycle("Q?", PLAN, CONTEXT))

        assert pools.counts() == {"pro": 0, "con": 0, "neutral": 0}

    def test_cross_side_duplicate_urls_dropped(self):
        llm = FakeLanguageModel({
            "evidence_pro": {"items": [_draft("CPI cooled", ["https://bls.gov/cpi/may"])]},
            "evidence_con": {"items": [_draft("CPI sticky", ["https://www.bls.gov/cpi/may"])]},
        })
        pools = asyncio.run(_researcher(llm).initial_cycle("Q?", PLAN, CONTEXT))
        assert [e.id for e in pools.pro] == ["pro-1"]
        assert pools.con == []


class TestMergePools:
    """Tests for merge_pools()."""

    def test_existing_items_win(self, make_evidence):
        base = EvidencePools(pro=[make_evidence(id="pro-1", urls=["https://a.com/x"])])
        extra = EvidencePools(con=[make_evidence(id="fu1-1", polarity=-1, urls=["https://a.com/x"])])
        merged = merge_pools(base, extra, domain_cap=5)
        assert [e.id for e in merged.all()] == ["pro-1"]

    def test_host_cap_spans_the_run(self, make_evidence):
        base = EvidencePools(pro=[make_evidence(urls=[f"https://a.com/{i}"]) for i in range(2)])
        extra = EvidencePools(neutral=[make_evidence(polarity=0, urls=[f"https://a.com/n{i}"]) for i in range(2)])
        merged = merge_pools(base, extra, domain_cap=3)
        assert merged.counts() == {"pro": 2, "con": 0, "neutral": 1}

    def test_split_by_polarity(self, make_evidence):
        items = [make_evidence(polarity=1), make_evidence(polarity=0), make_evidence(polarity=-1)]
        assert split_by_polarity(items).counts() == {"pro": 1, "con": 1, "neutral": 1}
