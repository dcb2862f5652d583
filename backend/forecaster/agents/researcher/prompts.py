SUMMARY_SYSTEM_PROMPT = """
You compress research notes into a concise, high-signal summary. Preserve
key facts, entities, dates and numbers. No fluff.
"""

SUMMARY_PROMPT_TEMPLATE = """
Question: {question}
{side_directive}
Stay strictly on-topic for the question. Remove unrelated domains or entities.
Compress the following research findings into a tight bullet list with short
headings. Max {max_chars} characters.

---
{findings}
"""

SIDE_DIRECTIVES = {
    "FOR": (
        "Target: PRO side. Emphasize findings that SUPPORT the outcome. "
        "Prioritize directly supportive facts and high-credibility sources."
    ),
    "AGAINST": (
        "Target: CON side. Emphasize findings that CONTRADICT the outcome. "
        "Prioritize directly disconfirming facts and high-credibility sources."
    ),
}

NEUTRAL_DIRECTIVE = "Target: NEUTRAL. Provide a factual, topic-focused summary without taking a side."


EVIDENCE_SYSTEM_PROMPT = """
You are an expert forecasting researcher producing structured evidence.
Stay strictly on-topic for the question. Reject material about unrelated
people, companies or domains.
"""

CLASSIFICATION_RULES = """
Evidence types:
- A (primary): official documents, filings, government data, direct on-record quotes.
- B (high-quality secondary): major outlets with verified sourcing, expert analysis
  with clear methodology, academic or think-tank reports with data.
- C (standard secondary): reputable outlets citing primary sources, industry
  publications, recognized expert opinion.
- D (weak): unverified social media, blogs, forums, anonymous or speculative claims.

Scoring:
- verifiability: 1.0 if the numbers can be recomputed or verified, else 0-1.
- consistency: internal logical coherence, 0-1.
- corroborations_indep: number of independent sources confirming the claim.
- Use the same origin_id for syndicated copies of one report.
- Always give published_at when the source shows a date.
"""

SIDE_EVIDENCE_PROMPT_TEMPLATE = """
You are the {role}. Goal: independent evidence {goal} the outcome.

Question: {question}
Subclaims: {subclaims}
{market_context}
Research summary:
{summary}

Source URLs returned by search (use only these; use [] when none apply):
{urls}

{classification_rules}
Set polarity to {polarity} for every item.
Prefer sources from the last 30 days, otherwise the last 180 days.
Produce 4-8 evidence items.
"""

ADJACENT_EVIDENCE_PROMPT_TEMPLATE = """
You are the Adjacent-Signals Researcher. Find catalysts that affect the
outcome indirectly.

Question: {question}
Adjacent event types: {event_types}
{market_context}
Research summary:
{summary}

Source URLs returned by search (use only these; use [] when none apply):
{urls}

{classification_rules}
For every item also set:
- pathway: catalyst category (platform-policy, distribution, release/tour,
  product, viral, award/media, regulatory/legal, macro/geopolitical, ...)
- connection_strength: 0-1 strength of the link to the outcome
- polarity: 1 if the catalyst makes the outcome more likely, -1 if less,
  0 if the direction is unclear
Produce 3-6 evidence items.
"""

FOLLOW_UP_EVIDENCE_PROMPT_TEMPLATE = """
You are filling a gap identified by the reviewer.

Question: {question}
Follow-up search: {query}
Why it matters: {rationale}
Target side: {side}
{market_context}
Research summary:
{summary}

Source URLs returned by search (use only these; use [] when none apply):
{urls}

{classification_rules}
Set polarity to {polarity} for every item.
Produce 2-6 evidence items.
"""
