SYSTEM_PROMPT = """
You are an expert analyst. Identify the key factors that would most likely
influence the outcome of this prediction market.
"""

USER_PROMPT_TEMPLATE = """
Analyze this prediction market and identify 3-5 key drivers that could
influence the outcome:

Question: {question}
Current market price: {price}
Volume: {volume}
Liquidity: {liquidity}

Consider economic indicators, political developments, technological
progress, regulatory changes, social trends, historical precedents and
market sentiment.

Return the most important factors that could move this market.
"""
