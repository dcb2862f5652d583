from forecaster.agents.analyst.agent import AnalystAgent
from forecaster.agents.deps import PipelineDeps
from forecaster.agents.state import ForecastState
from forecaster.logging import logger
from forecaster.schemas.events import utc_now_iso
from forecaster.schemas.market import MarketSnapshot


def make_market_fn(state: ForecastState):
    """Live market probability for the blend: the current mid, 0.5 when unquoted."""

    async def market_fn(question: str) -> MarketSnapshot:
        mid = state.market.current_mid() if state.market else None
        return MarketSnapshot(
            probability=mid if mid is not None else 0.5,
            as_of=utc_now_iso(),
            source=state.market.platform if state.market else None,
        )

    return market_fn


def make_aggregate_node(deps: PipelineDeps):
    analyst = AnalystAgent(deps.llm, deps.settings)

    async def aggregate_node(state: ForecastState) -> ForecastState:
        with deps.tracing():
            pool = state.evidence_pool()
            deps.progress("aggregating", "Aggregating evidence...", evidence=len(pool))
            logger.info("AGGREGATE_NODE_START", extra={"evidence": len(pool)})

            result = await analyst.aggregate(
                state.question,
                state.p0,
                pool,
                critique=state.critique,
                market_fn=make_market_fn(state),
                now=deps.clock(),
            )

            new_state = state.model_copy(deep=True)
            new_state.aggregate = result

            deps.progress(
                "aggregation_complete",
                "Aggregation complete",
                p0=state.p0,
                p_neutral=result.neutral.p_neutral,
                p_aware=result.p_aware,
                evidence=len(result.evidence),
                excluded_by_critic=result.excluded_by_critic,
                off_topic=result.off_topic,
                niche_boosted=result.niche_boosted,
                clusters=[c.model_dump() for c in result.neutral.clusters],
            )
            return new_state

    return aggregate_node
