from datetime import datetime
from typing import Dict, List, Optional

from langchain_core.prompts import PromptTemplate

from forecaster.agents.critic.agent import filter_flagged_evidence
from forecaster.agents.critic.schemas import Critique
from forecaster.config import Settings
from forecaster.forecasting.aggregator import (
    MarketFn,
    aggregate_neutral,
    market_aware_probability,
)
from forecaster.forecasting.normalize import host_of
from forecaster.forecasting.weights import (
    apply_niche_authority,
    apply_pathway,
    apply_recency,
)
from forecaster.llm.capability import LanguageModel, Ok, TaskSpec
from forecaster.logging import logger
from forecaster.schemas.evidence import Evidence

from .prompts import (
    NICHE_PROMPT_TEMPLATE,
    NICHE_SYSTEM_PROMPT,
    RELEVANCE_PROMPT_TEMPLATE,
    RELEVANCE_SYSTEM_PROMPT,
)
from .schemas import AggregateResult, NicheReport, RelevanceReport


class AnalystAgent:
    """
    Aggregate stage.

    critic exclusions -> topic relevance -> niche authority -> pathway ->
    recency -> clustered neutral posterior -> market blend
    """

    def __init__(self, llm: LanguageModel, settings: Settings):
        self.llm = llm
        self.settings = settings

    # -----------------------------
    # Auxiliary scoring (degrades, never raises)
    # -----------------------------

    async def filter_relevant(self, evidence: List[Evidence], question: str) -> List[Evidence]:
        """Drop items the model marks off-topic. On failure keep everything."""
        if not evidence:
            return []

        items = "\n".join(
            f"ID: {e.id}\nClaim: \"{e.claim}\"\nURLs: {', '.join(e.urls) or 'None'}\n"
            for e in evidence
        )
        prompt = PromptTemplate.from_template(RELEVANCE_PROMPT_TEMPLATE).format(
            question=question,
            items=items,
        )
        result = await self.llm.generate_structured(
            TaskSpec(name="topic_relevance", system=RELEVANCE_SYSTEM_PROMPT.strip(), prompt=prompt, tier="small"),
            RelevanceReport,
        )
        if not isinstance(result, Ok):
            logger.warning("ANALYST_RELEVANCE_DEGRADED", extra={"error": result.error})
            return evidence

        off_topic = {v.id for v in result.value.relevant_evidence if not v.is_relevant}
        for v in result.value.relevant_evidence:
            if not v.is_relevant:
                logger.info("ANALYST_OFF_TOPIC", extra={"evidence_id": v.id, "reasoning": v.reasoning})
        return [e for e in evidence if e.id not in off_topic]

    async def niche_authority(self, evidence: List[Evidence], question: str) -> Dict[str, float]:
        """Per-item specialist authority. On failure every item scores 0."""
        if not evidence:
            return {}

        items = "\n\n".join(
            f"ID: {e.id}\nType: {e.type}\n"
            f"Domain: {(host_of(e.urls[0]) if e.urls else None) or 'unknown'}\n"
            f"Claim: {e.claim}"
            for e in evidence
        )
        prompt = PromptTemplate.from_template(NICHE_PROMPT_TEMPLATE).format(
            question=question,
            items=items,
        )
        result = await self.llm.generate_structured(
            TaskSpec(name="niche_authority", system=NICHE_SYSTEM_PROMPT.strip(), prompt=prompt),
            NicheReport,
        )
        if not isinstance(result, Ok):
            logger.warning("ANALYST_NICHE_DEGRADED", extra={"error": result.error})
            return {}

        known = {e.id for e in evidence}
        return {row.id: row.authority for row in result.value.niche if row.id in known}

    # -----------------------------
    # Aggregate
    # -----------------------------

    async def aggregate(
        self,
        question: str,
        p0: float,
        evidence: List[Evidence],
        critique: Optional[Critique] = None,
        market_fn: Optional[MarketFn] = None,
        now: Optional[datetime] = None,
    ) -> AggregateResult:
        critique = critique or Critique.empty()

        kept = filter_flagged_evidence(evidence, critique)
        excluded = len(evidence) - len(kept)

        relevant = await self.filter_relevant(kept, question)
        off_topic = len(kept) - len(relevant)

        authority = await self.niche_authority(relevant, question)
        weighted = apply_niche_authority(relevant, authority)
        weighted = apply_pathway(weighted)
        weighted = apply_recency(weighted, now)

        rho_by_cluster = {**self.settings.rho_by_cluster, **critique.correlation_adjustments}

        neutral = aggregate_neutral(
            p0,
            weighted,
            rho_by_cluster=rho_by_cluster,
            default_rho=self.settings.default_rho,
        )

        # Market is consulted only once the neutral posterior is fixed
        p_aware = await market_aware_probability(
            neutral,
            question,
            market_fn,
            alpha=self.settings.market_alpha,
        )

        logger.info(
            "ANALYST_AGGREGATE_END",
            extra={
                "input": len(evidence),
                "excluded_by_critic": excluded,
                "off_topic": off_topic,
                "niche_boosted": sum(1 for v in authority.values() if v > 0),
                "clusters": len(neutral.clusters),
                "p_neutral": round(neutral.p_neutral, 4),
                "p_aware": round(p_aware, 4) if p_aware is not None else None,
            },
        )

        return AggregateResult(
            neutral=neutral,
            p_aware=p_aware,
            evidence=weighted,
            excluded_by_critic=excluded,
            off_topic=off_topic,
            niche_boosted=sum(1 for v in authority.values() if v > 0),
        )
