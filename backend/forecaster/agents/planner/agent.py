from datetime import date
from typing import Optional

from langchain_core.prompts import PromptTemplate

from forecaster.errors import PipelineFatal
from forecaster.llm.capability import LanguageModel, Ok, TaskSpec
from forecaster.logging import logger

from .prompts import SYSTEM_PROMPT, USER_PROMPT_TEMPLATE
from .schemas import ResearchPlan


class PlannerAgent:
    """
    Turns a market question into a research plan.

    A plan is required for every run: any failure here is fatal.
    """

    def __init__(self, llm: LanguageModel):
        self.llm = llm

    async def plan(self, question: str, today: Optional[date] = None) -> ResearchPlan:
        prompt = PromptTemplate.from_template(USER_PROMPT_TEMPLATE).format(
            question=question,
            today=(today or date.today()).isoformat(),
        )

        result = await self.llm.generate_structured(
            TaskSpec(name="plan", system=SYSTEM_PROMPT.strip(), prompt=prompt),
            ResearchPlan,
        )

        if not isinstance(result, Ok):
            logger.error("PLANNER_FAILED", extra={"error": result.error})
            raise PipelineFatal("plan", f"could not produce a research plan ({result.error})")

        plan = result.value
        logger.info(
            "PLANNER_END",
            extra={
                "subclaims": len(plan.subclaims),
                "search_seeds": len(plan.search_seeds),
                "adjacent_seeds": len(plan.adjacent_seeds),
                "recency_needed": plan.recency.needed,
            },
        )
        return plan
