import asyncio

from forecaster.agents.deps import PipelineDeps
from forecaster.agents.parameters.agent import (
    DEFAULT_INTERVAL,
    ParametersAgent,
    explain_interval_choice,
    select_history_interval,
)
from forecaster.agents.state import ForecastState
from forecaster.errors import ForecastError, PipelineFatal
from forecaster.forecasting.logodds import clamp
from forecaster.logging import logger
from forecaster.schemas.market import MarketPayload


def market_prior(payload: MarketPayload, floor: float, ceiling: float) -> float:
    """First outcome's mid, kept away from the extremes; 0.5 without a quote."""
    mid = payload.current_mid()
    if mid is None:
        return 0.5
    return clamp(mid, floor, ceiling)


def make_fetch_market_node(deps: PipelineDeps):

    async def fetch_market_node(state: ForecastState) -> ForecastState:
        with deps.tracing():
            deps.progress(
                "fetch_complete_data",
                "Detecting platform and fetching market data...",
                market_url=state.market_url,
            )
            logger.info("FETCH_MARKET_NODE_START", extra={"market_url": state.market_url})

            try:
                payload = await asyncio.to_thread(
                    deps.market.fetch,
                    state.market_url,
                    DEFAULT_INTERVAL,
                    state.with_books,
                    state.with_trades,
                )
            except ForecastError as e:
                raise PipelineFatal("fetch_market", f"could not fetch market data: {e}") from e

            new_state = state.model_copy(deep=True)
            new_state.market = payload
            new_state.question = payload.market_facts.question
            new_state.p0 = market_prior(payload, deps.settings.prior_floor, deps.settings.prior_ceiling)

            deps.progress(
                "complete_data_ready",
                "Market data ready",
                interval=DEFAULT_INTERVAL,
                p0=new_state.p0,
                **payload.summary(),
            )
            return new_state

    return fetch_market_node


def make_optimize_parameters_node(deps: PipelineDeps):
    agent = ParametersAgent(deps.llm)

    async def optimize_parameters_node(state: ForecastState) -> ForecastState:
        with deps.tracing():
            deps.progress("optimize_parameters", "Selecting history interval and drivers...")

            now = deps.clock()
            interval = state.requested_interval or select_history_interval(state.market, now)
            drivers = state.requested_drivers or await agent.generate_drivers(state.market)

            payload = state.market
            if interval != DEFAULT_INTERVAL:
                deps.progress(
                    "fetch_complete_data",
                    f"Refetching market data at interval {interval}...",
                    interval=interval,
                )
                try:
                    payload = await asyncio.to_thread(
                        deps.market.fetch,
                        state.market_url,
                        interval,
                        state.with_books,
                        state.with_trades,
                    )
                except ForecastError as e:
                    logger.warning(
                        "MARKET_REFETCH_FAILED",
                        extra={"interval": interval, "error": str(e)},
                    )

            new_state = state.model_copy(deep=True)
            new_state.market = payload
            new_state.history_interval = interval
            new_state.interval_explanation = explain_interval_choice(interval, payload, now)
            new_state.drivers = drivers

            logger.info(
                "OPTIMIZE_PARAMETERS_END",
                extra={"interval": interval, "drivers": len(drivers)},
            )
            deps.progress(
                "parameters_optimized",
                "Parameters optimized",
                interval=interval,
                interval_explanation=new_state.interval_explanation,
                drivers=drivers,
            )
            return new_state

    return optimize_parameters_node
