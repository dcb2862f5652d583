from forecaster.agents.critic.agent import CriticAgent
from forecaster.agents.deps import PipelineDeps
from forecaster.agents.state import ForecastState
from forecaster.logging import logger


def make_critic_node(deps: PipelineDeps):
    critic = CriticAgent(deps.llm, max_follow_ups=deps.settings.max_follow_ups)

    async def critic_node(state: ForecastState) -> ForecastState:
        with deps.tracing():
            deps.progress("criticism", "Reviewing evidence for gaps and duplicates...")
            logger.info(
                "CRITIC_NODE_START",
                extra={"pro": len(state.pro), "con": len(state.con)},
            )

            critique = await critic.critique(state.question, state.pro, state.con)

            new_state = state.model_copy(deep=True)
            new_state.critique = critique

            deps.progress(
                "criticism_complete",
                "Critique complete",
                missing=critique.missing,
                duplication_flags=critique.duplication_flags,
                data_concerns=critique.data_concerns,
                follow_up_searches=[d.model_dump() for d in critique.follow_up_searches],
                correlation_adjustments=critique.correlation_adjustments,
                confidence_issues=critique.confidence_issues,
            )
            return new_state

    return critic_node


def route_after_critique(state: ForecastState) -> str:
    """Follow-up research runs only when the critic asked for it."""
    if state.critique is not None and state.critique.follow_up_searches:
        return "follow_up"
    return "skip_follow_up"
