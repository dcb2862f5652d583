"""
Unit tests for the planner agent.
"""

import asyncio
from datetime import date

import pytest

from conftest import FakeLanguageModel
from forecaster.agents.planner.agent import PlannerAgent
from forecaster.errors import PipelineFatal


PLAN = {
    "subclaims": ["Inflation cools", "Labor market softens"],
    "key_variables": ["CPI"],
    "search_seeds": ["fed june cut", " ", "cpi may"],
    "decision_criteria": ["FOMC statement"],
    "recency": {"needed": True, "start_date": "2025-01-01"},
    "adjacent_event_types": ["macro shocks"],
    "adjacent_seeds": [f"adjacent {i}" for i in range(15)],
}


class TestPlannerAgent:
    """Tests for PlannerAgent.plan()."""

    def test_plan(self):
        llm = FakeLanguageModel({"plan": PLAN})
        plan = asyncio.run(PlannerAgent(llm).plan("Will the Fed cut?", today=date(2025, 6, 1)))

        assert plan.search_seeds == ["fed june cut", "cpi may"]
        assert len(plan.adjacent_seeds) == 12
        assert plan.recency.start_date == "2025-01-01"
        assert "2025-06-01" in llm.calls[0].prompt

    def test_failure_is_fatal(self):
        with pytest.raises(PipelineFatal) as exc:
            asyncio.run(PlannerAgent(FakeLanguageModel()).plan("Will the Fed cut?"))
        assert exc.value.stage == "plan"

    def test_single_subclaim_is_fatal(self):
        llm = FakeLanguageModel({"plan": dict(PLAN, subclaims=["only one"])})
        with pytest.raises(PipelineFatal):
            asyncio.run(PlannerAgent(llm).plan("Will the Fed cut?"))
