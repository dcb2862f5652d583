RELEVANCE_SYSTEM_PROMPT = """
You are a relevance analyzer. Decide whether evidence items are directly
relevant to the prediction question.

Relevant evidence is about the SAME subject and context as the question
and could reasonably influence the prediction. Studies, statistics or
reports about different people, companies or domains are irrelevant.
"""

RELEVANCE_PROMPT_TEMPLATE = """
Question: "{question}"

Analyze each evidence item for relevance:

{items}

Return a verdict for every id. Be strict: mark an item relevant only if it
could influence the probability of this specific outcome.
"""

NICHE_SYSTEM_PROMPT = """
You are a domain-savvy assessor. For each evidence item, rate whether the
SOURCE is a credible niche or specialist outlet for the TOPIC, independent
of mainstream brand reputation. Return authority in [0, 1].
"""

NICHE_PROMPT_TEMPLATE = """
Question: "{question}"

Assess niche credibility for each evidence source. Consider:
- Domain specificity to the topic (specialized industry sites, respected
  organizations, expert-run resources)
- Track record within the niche, as far as can be inferred
- Do not score mainstream outlets highly unless the topic is their
  specialty desk
- If unclear, assign mid or low authority

ITEMS:

{items}
"""
