SYSTEM_PROMPT = "Write clean, skimmable Markdown only."

NARRATIVE_PROMPT_TEMPLATE = """
You are the Reporter. Explain how the evidence shaped the probability.

Question: {question}
- Evidence-only probability p_neutral = {p_neutral}
- Market-aware probability p_aware = {p_aware}
- Base rate p0 = {p0}
- Prediction: {direction}
- Key drivers: {drivers}

Evidence catalog (most influential first):
{catalog}

Write these sections:

## Why This Prediction
Link the top positive and negative evidence to the posterior shift. Cite
evidence ids and their percentage-point contribution, and note where
cluster correlation reduced an item's marginal effect.

## What Would Change Our Mind
3-5 specific events or datasets that would materially move the estimate,
with direction and likely magnitude.

## Caveats & Limitations
Biases, sampling issues, over-reliance on correlated clusters, stale data.

Use evidence ids when citing; no raw URLs. Keep paragraphs tight.
"""
