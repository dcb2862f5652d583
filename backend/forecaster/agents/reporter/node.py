from forecaster.agents.deps import PipelineDeps
from forecaster.agents.reporter.agent import ReporterAgent
from forecaster.agents.state import ForecastState
from forecaster.logging import logger
from forecaster.schemas.evidence import make_forecast_card


def make_report_node(deps: PipelineDeps):
    reporter = ReporterAgent(deps.llm)

    async def report_node(state: ForecastState) -> ForecastState:
        with deps.tracing():
            deps.progress("reporting", "Composing forecast report...")

            result = state.aggregate
            neutral = result.neutral
            provenance = [u for e in result.evidence for u in e.urls] + [state.market_url]

            markdown = await reporter.compose(
                question=state.question,
                p0=neutral.p0,
                p_neutral=neutral.p_neutral,
                p_aware=result.p_aware,
                influence=list(neutral.influence),
                clusters=list(neutral.clusters),
                drivers=state.drivers,
                evidence=result.evidence,
                provenance=list(dict.fromkeys(provenance)),
            )

            card = make_forecast_card(
                question=state.question,
                p0=neutral.p0,
                p_neutral=neutral.p_neutral,
                p_aware=result.p_aware,
                alpha=deps.settings.market_alpha,
                drivers=state.drivers,
                influence=list(neutral.influence),
                clusters=list(neutral.clusters),
                provenance=provenance,
                markdown_report=markdown,
            )

            new_state = state.model_copy(deep=True)
            new_state.card = card

            logger.info(
                "REPORT_NODE_END",
                extra={"p_neutral": round(card.p_neutral, 4), "provenance": len(card.provenance)},
            )
            deps.progress(
                "report_complete",
                "Report complete",
                report_length=len(markdown),
            )
            return new_state

    return report_node
