import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from langchain_core.prompts import PromptTemplate

from forecaster.agents.critic.schemas import FollowUpSearch
from forecaster.agents.planner.schemas import ResearchPlan
from forecaster.config import Settings
from forecaster.errors import EmptyResult, ForecastError
from forecaster.forecasting.normalize import canonicalize_url, normalize_evidence
from forecaster.llm.capability import LanguageModel, Ok, TaskSpec
from forecaster.logging import logger
from forecaster.schemas.evidence import Evidence
from forecaster.schemas.market import MarketPayload
from forecaster.services.search import SearchContext, SearchProvider, SearchResult

from .prompts import (
    ADJACENT_EVIDENCE_PROMPT_TEMPLATE,
    CLASSIFICATION_RULES,
    EVIDENCE_SYSTEM_PROMPT,
    FOLLOW_UP_EVIDENCE_PROMPT_TEMPLATE,
    NEUTRAL_DIRECTIVE,
    SIDE_DIRECTIVES,
    SIDE_EVIDENCE_PROMPT_TEMPLATE,
    SUMMARY_PROMPT_TEMPLATE,
    SUMMARY_SYSTEM_PROMPT,
)
from .schemas import EvidenceBatch, EvidenceDraft, FindingsSummary, ResearchSide
from .selection import (
    ADJACENT_LIMITS,
    FOLLOW_UP_LIMITS,
    SIDE_LIMITS,
    SelectionLimits,
    drop_stale,
    fresh_first,
)


SIDE_POLARITY = {
    "FOR": 1,
    "AGAINST": -1,
    "NEUTRAL": 0,
    "BOTH": 0,
}

SUMMARY_MAX_CHARS = 2500
FINDINGS_MAX_CHARS = 8000
MAX_PROMPT_URLS = 20


@dataclass
class EvidencePools:
    pro: List[Evidence] = field(default_factory=list)
    con: List[Evidence] = field(default_factory=list)
    neutral: List[Evidence] = field(default_factory=list)

    def all(self) -> List[Evidence]:
        return self.pro + self.con + self.neutral

    def counts(self) -> Dict[str, int]:
        return {"pro": len(self.pro), "con": len(self.con), "neutral": len(self.neutral)}


# -----------------------------
# Utilities
# -----------------------------

def market_context(market: Optional[MarketPayload]) -> str:
    if market is None:
        return ""
    mid = market.current_mid()
    price = f"{mid * 100:.1f}%" if mid is not None else "N/A"
    volume = f"${market.market_facts.volume:,.0f}" if market.market_facts.volume is not None else "N/A"
    liquidity = f"${market.market_facts.liquidity:,.0f}" if market.market_facts.liquidity is not None else "N/A"
    return (
        "Market context:\n"
        f"- Current market price: {price}\n"
        f"- Volume: {volume}\n"
        f"- Liquidity: {liquidity}\n"
    )


def format_findings(results: Sequence[SearchResult]) -> str:
    blocks = []
    for r in results:
        dated = f" ({r.published_date})" if r.published_date else ""
        blocks.append(f"### {r.title}{dated}\n{r.url}\n{r.content}")
    return "\n\n".join(blocks)


def split_by_polarity(items: List[Evidence]) -> EvidencePools:
    return EvidencePools(
        pro=[e for e in items if e.polarity > 0],
        con=[e for e in items if e.polarity < 0],
        neutral=[e for e in items if e.polarity == 0],
    )


def merge_pools(base: EvidencePools, extra: EvidencePools, domain_cap: int) -> EvidencePools:
    """
    Combine two pools and re-run source dedup over the whole run.

    Items already in ``base`` come first, so they win URL and host-cap ties.
    """
    ordered = base.all() + extra.all()
    side_of = {}
    for pool_name, pool in (("pro", base.pro), ("con", base.con), ("neutral", base.neutral),
                            ("pro", extra.pro), ("con", extra.con), ("neutral", extra.neutral)):
        for e in pool:
            side_of[e.id] = pool_name

    merged = EvidencePools()
    for e in normalize_evidence(ordered, domain_cap):
        getattr(merged, side_of[e.id]).append(e)
    return merged


# -----------------------------
# Researcher Agent
# -----------------------------

class ResearcherAgent:
    """
    Runs one research task per side: search, summarize, extract evidence.

    Every task fails closed to an empty list; one side failing never blocks
    the others.
    """

    def __init__(
        self,
        llm: LanguageModel,
        search: SearchProvider,
        settings: Settings,
        now: Optional[datetime] = None,
    ):
        self.llm = llm
        self.search = search
        self.settings = settings
        self.now = now

    def _now(self) -> datetime:
        return self.now or datetime.now(timezone.utc)

    # -----------------------------
    # Search + summarize
    # -----------------------------

    async def _search_one(
        self,
        query: str,
        context: SearchContext,
    ) -> List[SearchResult]:
        try:
            return await self.search.search(query, context)
        except ForecastError as e:
            logger.warning("RESEARCH_SEARCH_FAILED", extra={"query": query, "error": str(e)})
            return []

    async def gather_findings(
        self,
        queries: Sequence[str],
        context: SearchContext,
    ) -> Tuple[List[SearchResult], List[str]]:
        batches = await asyncio.gather(*(self._search_one(q, context) for q in queries))

        results: List[SearchResult] = []
        urls: List[str] = []
        for batch in batches:
            for r in batch:
                results.append(r)
                if r.url and r.url not in urls:
                    urls.append(r.url)
        return results, urls

    async def summarize(self, raw: str, question: str, side: ResearchSide) -> str:
        """Side-aware compression; falls back to truncation."""
        if not raw:
            return ""
        prompt = PromptTemplate.from_template(SUMMARY_PROMPT_TEMPLATE).format(
            question=question,
            side_directive=SIDE_DIRECTIVES.get(side, NEUTRAL_DIRECTIVE),
            max_chars=SUMMARY_MAX_CHARS,
            findings=raw[:FINDINGS_MAX_CHARS],
        )
        result = await self.llm.generate_structured(
            TaskSpec(
                name=f"summarize_{side.lower()}",
                system=SUMMARY_SYSTEM_PROMPT.strip(),
                prompt=prompt,
                tier="small",
            ),
            FindingsSummary,
        )
        if isinstance(result, Ok):
            return result.value.summary[:SUMMARY_MAX_CHARS]

        logger.warning("RESEARCH_SUMMARY_FALLBACK", extra={"side": side, "error": result.error})
        return raw[:SUMMARY_MAX_CHARS]

    # -----------------------------
    # Evidence extraction
    # -----------------------------

    def _to_evidence(
        self,
        drafts: List[EvidenceDraft],
        side: ResearchSide,
        allowed_urls: List[str],
    ) -> List[Evidence]:
        allowed = {canonicalize_url(u) for u in allowed_urls} - {None}
        items = []
        for i, d in enumerate(drafts, start=1):
            # Only URLs that search actually returned
            urls = [u for u in d.urls if canonicalize_url(u) in allowed]
            polarity = SIDE_POLARITY[side] if side in SIDE_POLARITY else d.polarity
            items.append(
                Evidence(
                    id=f"draft-{i}",
                    claim=d.claim,
                    polarity=polarity,
                    type=d.type,
                    urls=urls,
                    origin_id=d.origin_id or "unknown",
                    published_at=d.published_at,
                    first_report=d.first_report,
                    verifiability=d.verifiability,
                    consistency=d.consistency,
                    corroborations_indep=d.corroborations_indep,
                    pathway=d.pathway if side == "ADJACENT" else None,
                    connection_strength=d.connection_strength if side == "ADJACENT" else None,
                )
            )
        return items

    def _finalize(
        self,
        items: List[Evidence],
        id_prefix: str,
        limits: SelectionLimits,
    ) -> List[Evidence]:
        now = self._now()
        items = normalize_evidence(items, self.settings.domain_cap)

        before = len(items)
        items = drop_stale(items, self.settings.max_evidence_age_days, now)
        if len(items) != before:
            logger.info(
                "RESEARCH_STALE_DROPPED",
                extra={"prefix": id_prefix, "dropped": before - len(items)},
            )

        items = fresh_first(items, limits, now)
        return [
            e.model_copy(update={"id": f"{id_prefix}-{i}"})
            for i, e in enumerate(items, start=1)
        ]

    async def _extract(
        self,
        task_name: str,
        prompt: str,
        side: ResearchSide,
        urls: List[str],
    ) -> List[Evidence]:
        result = await self.llm.generate_structured(
            TaskSpec(name=task_name, system=EVIDENCE_SYSTEM_PROMPT.strip(), prompt=prompt),
            EvidenceBatch,
        )
        if not isinstance(result, Ok):
            logger.warning("RESEARCH_EXTRACTION_FAILED", extra={"task": task_name, "error": result.error})
            return []
        if not result.value.items:
            raise EmptyResult(f"{task_name}: no evidence extracted")
        return self._to_evidence(result.value.items, side, urls)

    def _url_block(self, urls: List[str]) -> str:
        if not urls:
            return "(no URLs returned by search)"
        return "\n".join(f"{i}. {u}" for i, u in enumerate(urls[:MAX_PROMPT_URLS], start=1))

    # -----------------------------
    # Research tasks
    # -----------------------------

    async def research_side(
        self,
        question: str,
        plan: ResearchPlan,
        side: ResearchSide,
        context: SearchContext,
        market: Optional[MarketPayload] = None,
    ) -> List[Evidence]:
        prefix = "pro" if side == "FOR" else "con"
        queries = plan.search_seeds[: self.settings.seeds_per_side]
        results, urls = await self.gather_findings(queries, context)
        summary = await self.summarize(format_findings(results), question, side)

        prompt = PromptTemplate.from_template(SIDE_EVIDENCE_PROMPT_TEMPLATE).format(
            role="Pro-Researcher" if side == "FOR" else "Con-Researcher",
            goal="supporting" if side == "FOR" else "contradicting",
            question=question,
            subclaims=" | ".join(plan.subclaims),
            market_context=market_context(market),
            summary=summary or "(no findings)",
            urls=self._url_block(urls),
            classification_rules=CLASSIFICATION_RULES,
            polarity=SIDE_POLARITY[side],
        )
        items = await self._extract(f"evidence_{prefix}", prompt, side, urls)
        return self._finalize(items, prefix, SIDE_LIMITS)

    async def research_adjacent(
        self,
        question: str,
        plan: ResearchPlan,
        context: SearchContext,
        market: Optional[MarketPayload] = None,
    ) -> List[Evidence]:
        if not plan.adjacent_seeds:
            return []
        results, urls = await self.gather_findings(plan.adjacent_seeds, context)
        summary = await self.summarize(format_findings(results), question, "ADJACENT")

        prompt = PromptTemplate.from_template(ADJACENT_EVIDENCE_PROMPT_TEMPLATE).format(
            question=question,
            event_types=", ".join(plan.adjacent_event_types) or "n/a",
            market_context=market_context(market),
            summary=summary or "(no findings)",
            urls=self._url_block(urls),
            classification_rules=CLASSIFICATION_RULES,
        )
        items = await self._extract("evidence_adjacent", prompt, "ADJACENT", urls)
        return self._finalize(items, "adj", ADJACENT_LIMITS)

    async def research_follow_up(
        self,
        question: str,
        directive: FollowUpSearch,
        index: int,
        context: SearchContext,
        market: Optional[MarketPayload] = None,
    ) -> List[Evidence]:
        results, urls = await self.gather_findings([directive.query], context)
        if not results:
            raise EmptyResult(f"no search results for '{directive.query}'")
        summary = await self.summarize(format_findings(results), question, directive.side)

        prompt = PromptTemplate.from_template(FOLLOW_UP_EVIDENCE_PROMPT_TEMPLATE).format(
            question=question,
            query=directive.query,
            rationale=directive.rationale or "n/a",
            side=directive.side,
            market_context=market_context(market),
            summary=summary,
            urls=self._url_block(urls),
            classification_rules=CLASSIFICATION_RULES,
            polarity=SIDE_POLARITY[directive.side],
        )
        items = await self._extract(f"evidence_follow_up_{index}", prompt, directive.side, urls)
        return self._finalize(items, f"fu{index}", FOLLOW_UP_LIMITS)

    # -----------------------------
    # Cycles
    # -----------------------------

    async def _guarded(self, name: str, coro) -> List[Evidence]:
        try:
            return await coro
        except EmptyResult as e:
            logger.warning("RESEARCH_EMPTY_RESULT", extra={"task": name, "error": str(e)})
            return []
        except ForecastError as e:
            logger.warning("RESEARCH_TASK_FAILED", extra={"task": name, "error": str(e)})
            return []

    async def initial_cycle(
        self,
        question: str,
        plan: ResearchPlan,
        context: SearchContext,
        market: Optional[MarketPayload] = None,
    ) -> EvidencePools:
        """FOR, AGAINST and adjacent research in parallel."""
        pro, con, adjacent = await asyncio.gather(
            self._guarded("pro", self.research_side(question, plan, "FOR", context, market)),
            self._guarded("con", self.research_side(question, plan, "AGAINST", context, market)),
            self._guarded("adjacent", self.research_adjacent(question, plan, context, market)),
        )

        pools = merge_pools(
            EvidencePools(pro=pro, con=con),
            split_by_polarity(adjacent),
            self.settings.domain_cap,
        )
        logger.info("RESEARCH_INITIAL_CYCLE_END", extra={**pools.counts(), "adjacent": len(adjacent)})
        return pools

    async def follow_up_cycle(
        self,
        question: str,
        directives: List[FollowUpSearch],
        context: SearchContext,
        market: Optional[MarketPayload] = None,
    ) -> EvidencePools:
        """Each directive in parallel; results merged by side."""
        directives = directives[: self.settings.max_follow_ups]
        batches = await asyncio.gather(
            *(
                self._guarded(
                    f"follow_up_{i}",
                    self.research_follow_up(question, d, i, context, market),
                )
                for i, d in enumerate(directives, start=1)
            )
        )

        pools = EvidencePools()
        for directive, items in zip(directives, batches):
            if directive.side == "FOR":
                pools.pro.extend(items)
            elif directive.side == "AGAINST":
                pools.con.extend(items)
            else:
                pools.neutral.extend(items)

        logger.info("RESEARCH_FOLLOW_UP_CYCLE_END", extra={**pools.counts(), "directives": len(directives)})
        return pools
