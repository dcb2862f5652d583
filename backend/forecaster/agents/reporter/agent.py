"""
Forecast report rendering.

The Markdown card is built deterministically from the aggregation output;
a model-written narrative is inserted when available.
"""

from typing import Dict, List, Optional

from langchain_core.prompts import PromptTemplate

from forecaster.forecasting.normalize import host_of
from forecaster.llm.capability import LanguageModel, Ok, TaskSpec
from forecaster.logging import logger
from forecaster.schemas.evidence import ClusterMeta, Evidence, InfluenceItem

from .prompts import NARRATIVE_PROMPT_TEMPLATE, SYSTEM_PROMPT
from .schemas import Narrative


TOP_N = 12


def _pct(p: Optional[float]) -> str:
    return f"{p * 100:.1f}%" if p is not None else "n/a"


def _source(e: Evidence) -> str:
    return (host_of(e.urls[0]) if e.urls else None) or e.origin_id or "unknown"


def _catalog_line(item: InfluenceItem, e: Optional[Evidence], cluster: Optional[ClusterMeta]) -> str:
    if e is None:
        return f"- {item.evidence_id} | Δpp={item.delta_pp * 100:+.2f} | logLR={item.log_lr:+.3f}"
    sign = "+" if e.polarity > 0 else "-" if e.polarity < 0 else "0"
    cluster_text = (
        f"cluster={cluster.cluster_id}, rho={cluster.rho:.2f}, mEff={cluster.m_eff:.2f}"
        if cluster else "cluster=n/a"
    )
    return (
        f"- {e.id} | {sign} | Type {e.type} | Δpp={item.delta_pp * 100:+.2f} | "
        f"logLR={item.log_lr:+.3f} | ver={e.verifiability:.2f} | corrInd={e.corroborations_indep} | "
        f"cons={e.consistency:.2f} | date={e.published_at or 'n/a'} | src={_source(e)} | {cluster_text}\n"
        f"  Claim: {e.claim}"
    )


def _adjacent_line(e: Evidence, delta_pp: float) -> str:
    strength = f"{e.connection_strength:.2f}" if e.connection_strength is not None else "n/a"
    return (
        f"- {e.id} | pathway={e.pathway or 'adjacent'} | strength={strength} | "
        f"Δpp={delta_pp * 100:+.2f} | Type {e.type}\n"
        f"  Claim: {e.claim}"
    )


class ReporterAgent:

    def __init__(self, llm: Optional[LanguageModel] = None, top_n: int = TOP_N):
        self.llm = llm
        self.top_n = top_n

    def catalog(
        self,
        influence: List[InfluenceItem],
        evidence: List[Evidence],
        clusters: List[ClusterMeta],
    ) -> List[str]:
        by_id: Dict[str, Evidence] = {e.id: e for e in evidence}
        by_cluster: Dict[str, ClusterMeta] = {c.cluster_id: c for c in clusters}
        lines = []
        for item in influence[: self.top_n]:
            e = by_id.get(item.evidence_id)
            lines.append(_catalog_line(item, e, by_cluster.get(e.origin_id) if e else None))
        return lines

    def render(
        self,
        question: str,
        p0: float,
        p_neutral: float,
        p_aware: Optional[float],
        influence: List[InfluenceItem],
        clusters: List[ClusterMeta],
        drivers: List[str],
        evidence: List[Evidence],
        provenance: List[str],
        narrative: Optional[str] = None,
    ) -> str:
        direction = "YES" if p_neutral > 0.5 else "NO"
        delta_by_id = {i.evidence_id: i.delta_pp for i in influence}

        sections = [
            f"# Forecast: {question}",
            f"## Prediction: {direction} ({_pct(p_neutral)})",
            "\n".join([
                f"- Evidence-only probability (p_neutral): **{_pct(p_neutral)}**",
                f"- Market-aware probability (p_aware): {_pct(p_aware)}",
                f"- Market prior (p0): {_pct(p0)}",
            ]),
        ]

        if narrative:
            sections.append(narrative.strip())

        catalog = self.catalog(influence, evidence, clusters)
        sections.append("## Top Influences\n" + ("\n".join(catalog) if catalog else "- No evidence survived aggregation."))

        if clusters:
            sections.append(
                "## Evidence Clusters\n"
                + "\n".join(
                    f"- {c.cluster_id}: n={c.size}, rho={c.rho:.2f}, mEff={c.m_eff:.2f}, meanLLR={c.mean_llr:+.3f}"
                    for c in clusters
                )
            )

        adjacent = [e for e in evidence if e.pathway or e.connection_strength is not None]
        if adjacent:
            sections.append(
                "## Adjacent Signals & Catalysts\n"
                + "\n".join(_adjacent_line(e, delta_by_id.get(e.id, 0.0)) for e in adjacent)
            )

        sections.append("## Key Drivers\n" + ("\n".join(f"- {d}" for d in drivers[:5]) or "- n/a"))

        if provenance:
            sections.append("## Sources\n" + "\n".join(f"- {u}" for u in provenance))

        return "\n\n".join(sections) + "\n"

    async def narrative(
        self,
        question: str,
        p0: float,
        p_neutral: float,
        p_aware: Optional[float],
        drivers: List[str],
        catalog: List[str],
    ) -> Optional[str]:
        """Model-written analysis sections, or None when unavailable."""
        if self.llm is None:
            return None

        prompt = PromptTemplate.from_template(NARRATIVE_PROMPT_TEMPLATE).format(
            question=question,
            p_neutral=_pct(p_neutral),
            p_aware=_pct(p_aware),
            p0=_pct(p0),
            direction=f"{'YES' if p_neutral > 0.5 else 'NO'} ({abs(p_neutral - 0.5) * 200:.1f}% confidence)",
            drivers="; ".join(drivers) or "n/a",
            catalog="\n".join(catalog) or "(none)",
        )
        result = await self.llm.generate_structured(
            TaskSpec(name="report_narrative", system=SYSTEM_PROMPT, prompt=prompt, tier="small"),
            Narrative,
        )
        if not isinstance(result, Ok):
            logger.warning("REPORT_NARRATIVE_DEGRADED", extra={"error": result.error})
            return None
        return result.value.markdown

    async def compose(
        self,
        question: str,
        p0: float,
        p_neutral: float,
        p_aware: Optional[float],
        influence: List[InfluenceItem],
        clusters: List[ClusterMeta],
        drivers: List[str],
        evidence: List[Evidence],
        provenance: List[str],
    ) -> str:
        narrative = await self.narrative(
            question, p0, p_neutral, p_aware, drivers,
            self.catalog(influence, evidence, clusters),
        )
        return self.render(
            question, p0, p_neutral, p_aware, influence, clusters,
            drivers, evidence, provenance, narrative=narrative,
        )
