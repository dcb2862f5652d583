from typing import List

from langchain_core.prompts import PromptTemplate

from forecaster.llm.capability import LanguageModel, Ok, TaskSpec
from forecaster.logging import logger
from forecaster.schemas.evidence import Evidence

from .prompts import SYSTEM_PROMPT, USER_PROMPT_TEMPLATE
from .schemas import MAX_FOLLOW_UPS, Critique


# -----------------------------
# Utilities
# -----------------------------

def _evidence_lines(items: List[Evidence]) -> str:
    if not items:
        return "- (none)"
    return "\n".join(
        f"- {e.id}: {e.claim} (Type {e.type}, origin {e.origin_id}, "
        f"verifiability {e.verifiability:.2f}, published {e.published_at or 'n/a'})"
        for e in items
    )


def is_flagged(e: Evidence, critique: Critique) -> bool:
    for flag in critique.duplication_flags:
        if flag and (flag in e.id or flag in e.origin_id):
            return True
    claim = e.claim.lower()
    origin = e.origin_id.lower()
    for concern in critique.data_concerns:
        needle = concern.lower()
        if needle and (needle in claim or needle in origin):
            return True
    return False


def filter_flagged_evidence(items: List[Evidence], critique: Critique) -> List[Evidence]:
    """Drop items matched by a duplication flag or a data concern."""
    return [e for e in items if not is_flagged(e, critique)]


# -----------------------------
# Critic Agent
# -----------------------------

class CriticAgent:
    """
    Reviews the pro/con pools after the first research cycle.

    A failed critique degrades to an empty one: nothing is excluded and no
    follow-up research runs.
    """

    def __init__(self, llm: LanguageModel, max_follow_ups: int = MAX_FOLLOW_UPS):
        self.llm = llm
        self.max_follow_ups = max_follow_ups

    async def critique(
        self,
        question: str,
        pro: List[Evidence],
        con: List[Evidence],
    ) -> Critique:
        prompt = PromptTemplate.from_template(USER_PROMPT_TEMPLATE).format(
            question=question,
            pro_count=len(pro),
            pro_lines=_evidence_lines(pro),
            con_count=len(con),
            con_lines=_evidence_lines(con),
            max_follow_ups=self.max_follow_ups,
        )

        result = await self.llm.generate_structured(
            TaskSpec(name="critique", system=SYSTEM_PROMPT.strip(), prompt=prompt),
            Critique,
        )

        if not isinstance(result, Ok):
            logger.warning("CRITIC_DEGRADED", extra={"error": result.error})
            return Critique.empty()

        critique = result.value
        if len(critique.follow_up_searches) > self.max_follow_ups:
            critique = critique.model_copy(
                update={"follow_up_searches": critique.follow_up_searches[: self.max_follow_ups]}
            )

        logger.info(
            "CRITIC_END",
            extra={
                "missing": len(critique.missing),
                "duplication_flags": len(critique.duplication_flags),
                "data_concerns": len(critique.data_concerns),
                "follow_ups": len(critique.follow_up_searches),
                "correlation_adjustments": len(critique.correlation_adjustments),
            },
        )
        return critique
