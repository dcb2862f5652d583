from forecaster.agents.deps import PipelineDeps
from forecaster.agents.researcher.agent import EvidencePools, ResearcherAgent, merge_pools
from forecaster.agents.state import ForecastState
from forecaster.logging import logger
from forecaster.services.search import SearchContext, default_start_date


def _brief(pools: EvidencePools) -> dict:
    return {
        "pro": [e.brief() for e in pools.pro],
        "con": [e.brief() for e in pools.con],
        "neutral": [e.brief() for e in pools.neutral],
    }


def _search_context(deps: PipelineDeps, state: ForecastState) -> SearchContext:
    start_date = None
    if state.plan is not None and state.plan.recency.start_date:
        start_date = state.plan.recency.start_date
    return deps.search_context.with_start_date(
        start_date or default_start_date(deps.clock())
    )


def make_research_node(deps: PipelineDeps):

    async def research_node(state: ForecastState) -> ForecastState:
        with deps.tracing():
            deps.progress("researching", "Researching both sides and adjacent signals...")
            logger.info("RESEARCH_NODE_START", extra={"run_id": state.run_id})

            researcher = ResearcherAgent(deps.llm, deps.search, deps.settings, now=deps.clock())
            pools = await researcher.initial_cycle(
                state.question,
                state.plan,
                _search_context(deps, state),
                state.market,
            )

            new_state = state.model_copy(deep=True)
            new_state.pro = pools.pro
            new_state.con = pools.con
            new_state.neutral = pools.neutral

            deps.progress(
                "initial_research_complete",
                "Initial research complete",
                **pools.counts(),
                evidence=_brief(pools),
            )
            return new_state

    return research_node


def make_follow_up_node(deps: PipelineDeps):

    async def follow_up_node(state: ForecastState) -> ForecastState:
        with deps.tracing():
            directives = state.critique.follow_up_searches
            deps.progress(
                "followup_research",
                f"Running {len(directives)} follow-up searches...",
                directives=[d.model_dump() for d in directives],
            )

            researcher = ResearcherAgent(deps.llm, deps.search, deps.settings, now=deps.clock())
            found = await researcher.follow_up_cycle(
                state.question,
                directives,
                _search_context(deps, state),
                state.market,
            )

            pools = merge_pools(
                EvidencePools(pro=state.pro, con=state.con, neutral=state.neutral),
                found,
                deps.settings.domain_cap,
            )

            new_state = state.model_copy(deep=True)
            new_state.pro = pools.pro
            new_state.con = pools.con
            new_state.neutral = pools.neutral
            new_state.follow_up_items = len(found.all())

            deps.progress(
                "followup_research_complete",
                "Follow-up research complete",
                added=found.counts(),
                **pools.counts(),
            )
            return new_state

    return follow_up_node


def make_skip_follow_up_node(deps: PipelineDeps):

    async def skip_follow_up_node(state: ForecastState) -> ForecastState:
        deps.progress(
            "followup_research_skipped",
            "No follow-up searches requested",
            **EvidencePools(pro=state.pro, con=state.con, neutral=state.neutral).counts(),
        )
        return state

    return skip_follow_up_node
