"""
Forecast graph.

Flow:
  fetch_market -> optimize_parameters -> planner -> research -> critic
  critic -> (follow_up | skip_follow_up) -> aggregate -> report

Every node emits its entry / exit progress steps. Fatal errors raised by a
node propagate out of the graph; the task runner turns them into the
single terminal ``error`` event.
"""

from langgraph.graph import END, StateGraph

from forecaster.agents.analyst.node import make_aggregate_node
from forecaster.agents.critic.node import make_critic_node, route_after_critique
from forecaster.agents.deps import PipelineDeps
from forecaster.agents.parameters.node import (
    make_fetch_market_node,
    make_optimize_parameters_node,
)
from forecaster.agents.planner.node import make_planner_node
from forecaster.agents.reporter.node import make_report_node
from forecaster.agents.researcher.node import (
    make_follow_up_node,
    make_research_node,
    make_skip_follow_up_node,
)
from forecaster.agents.state import ForecastState


def build_forecast_graph(deps: PipelineDeps):
    graph = StateGraph(ForecastState)

    graph.add_node("fetch_market", make_fetch_market_node(deps))
    graph.add_node("optimize_parameters", make_optimize_parameters_node(deps))
    graph.add_node("planner", make_planner_node(deps))
    graph.add_node("research", make_research_node(deps))
    graph.add_node("critic", make_critic_node(deps))
    graph.add_node("follow_up", make_follow_up_node(deps))
    graph.add_node("skip_follow_up", make_skip_follow_up_node(deps))
    graph.add_node("aggregate", make_aggregate_node(deps))
    graph.add_node("report", make_report_node(deps))

    graph.set_entry_point("fetch_market")

    graph.add_edge("fetch_market", "optimize_parameters")
    graph.add_edge("optimize_parameters", "planner")
    graph.add_edge("planner", "research")
    graph.add_edge("research", "critic")

    graph.add_conditional_edges(
        "critic",
        route_after_critique,
        {
            "follow_up": "follow_up",
            "skip_follow_up": "skip_follow_up",
        },
    )

    graph.add_edge("follow_up", "aggregate")
    graph.add_edge("skip_follow_up", "aggregate")
    graph.add_edge("aggregate", "report")
    graph.add_edge("report", END)

    return graph.compile()
