from forecaster.agents.deps import PipelineDeps
from forecaster.agents.planner.agent import PlannerAgent
from forecaster.agents.state import ForecastState
from forecaster.logging import logger


def make_planner_node(deps: PipelineDeps):
    planner = PlannerAgent(deps.llm)

    async def planner_node(state: ForecastState) -> ForecastState:
        with deps.tracing():
            deps.progress("planning", "Planning research...", question=state.question)
            logger.info("PLANNER_NODE_START", extra={"question": state.question})

            plan = await planner.plan(state.question, today=deps.clock().date())

            new_state = state.model_copy(deep=True)
            new_state.plan = plan

            deps.progress(
                "plan_complete",
                "Research plan ready",
                subclaims=plan.subclaims,
                search_seeds=plan.search_seeds,
                recency=plan.recency.model_dump(),
                adjacent_seeds=plan.adjacent_seeds,
            )
            return new_state

    return planner_node
