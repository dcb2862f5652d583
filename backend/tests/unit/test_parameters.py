"""
Unit tests for run parameter selection (history interval, drivers, prior).
"""

import asyncio
from datetime import timedelta

import pytest

from conftest import FakeLanguageModel, NOW
from forecaster.agents.parameters.agent import (
    GENERIC_DRIVERS,
    ParametersAgent,
    fallback_drivers,
    select_history_interval,
)
from forecaster.agents.parameters.node import market_prior
from forecaster.schemas.market import OutcomeQuote


def _with(payload, days_to_close=None, volume=None):
    facts = payload.market_facts.model_copy(update={
        "close_time": (NOW + timedelta(days=days_to_close)).isoformat() if days_to_close is not None else None,
        "volume": volume,
    })
    return payload.model_copy(update={"market_facts": facts})


class TestSelectHistoryInterval:
    """Tests for select_history_interval()."""

    def test_closing_soon_is_hourly(self, market_payload):
        assert select_history_interval(_with(market_payload, 1.5, 5_000_000), NOW) == "1h"

    def test_two_weeks_is_four_hourly(self, market_payload):
        assert select_history_interval(_with(market_payload, 10, 5_000_000), NOW) == "4h"

    def test_thin_market_is_four_hourly(self, market_payload):
        assert select_history_interval(_with(market_payload, 90, 2_000), NOW) == "4h"

    def test_long_liquid_market_is_daily(self, market_payload):
        assert select_history_interval(_with(market_payload, 90, 2_000_000), NOW) == "1d"

    def test_unknown_close_and_volume_is_daily(self, market_payload):
        assert select_history_interval(_with(market_payload), NOW) == "1d"


class TestDrivers:
    """Tests for driver generation and fallback."""

    def test_keyword_fallback(self):
        assert fallback_drivers("Will Bitcoin close above $100k?")[0] == "Regulatory environment"
        assert "Polling data" in fallback_drivers("Who wins the 2028 election?")

    def test_generic_fallback(self):
        assert fallback_drivers("Will the Fed cut rates in June 2025?") == GENERIC_DRIVERS

    def test_generated(self, market_payload):
        llm = FakeLanguageModel({"drivers": {"drivers": ["CPI", "Payrolls"], "reasoning": "macro"}})
        assert asyncio.run(ParametersAgent(llm).generate_drivers(market_payload)) == ["CPI", "Payrolls"]

    def test_failure_falls_back(self, market_payload):
        drivers = asyncio.run(ParametersAgent(FakeLanguageModel()).generate_drivers(market_payload))
        assert drivers == GENERIC_DRIVERS

    def test_empty_list_falls_back(self, market_payload):
        llm = FakeLanguageModel({"drivers": {"drivers": []}})
        assert asyncio.run(ParametersAgent(llm).generate_drivers(market_payload)) == GENERIC_DRIVERS


class TestMarketPrior:
    """Tests for market_prior()."""

    def test_first_outcome_mid(self, market_payload):
        assert market_prior(market_payload, 0.1, 0.9) == pytest.approx(0.35)

    @pytest.mark.parametrize("mid,expected", [(0.02, 0.1), (0.99, 0.9)])
    def test_clamped(self, market_payload, mid, expected):
        payload = market_payload.model_copy(update={"market_state_now": [OutcomeQuote(outcome="Yes", mid=mid)]})
        assert market_prior(payload, 0.1, 0.9) == pytest.approx(expected)

    def test_unquoted_is_even(self, market_payload):
        payload = market_payload.model_copy(update={"market_state_now": []})
        assert market_prior(payload, 0.1, 0.9) == 0.5
