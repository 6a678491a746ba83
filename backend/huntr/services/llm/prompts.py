"""
LLM Prompt Templates

Structured prompts for chart analysis, web-data refinement and follow-up chat.

RULES (enforced in all analysis prompts):
- The rule body is fixed content; only the learning section and the
  multi-timeframe framing vary
- The model must always answer with the JSON object shape below
"""

import json
from typing import Optional

from huntr.schemas.analysis import AnalysisResult
from huntr.schemas.search import QueryResults
from huntr.schemas.training import LearningContext, LearningSample
from huntr.services.llm.normalizer import format_number

# =============================================================================
# ANALYSIS RULE BODY
# =============================================================================

PERSONA = "You are Huntr AI, a professional trading analysis AI that provides actionable trading signals."

SINGLE_IMAGE_FRAMING = """ANALYTICAL APPROACH:

ADVANCED TECHNICAL ANALYSIS:"""

MULTI_IMAGE_FRAMING = """MULTI-TIMEFRAME ANALYTICAL APPROACH:

You are analyzing {image_count} chart images of the same market. Treat them as
one multi-timeframe read:
- HTF BIAS: Weekly/Daily charts set the storyline and the major trading range
- INTERMEDIATE STRUCTURE: 4H/1H charts define the current range and obstacles
- LTF ENTRY PRECISION: 15M/5M/1M charts time the entry after a liquidity sweep
- State whether the timeframes are aligned, mixed or conflicting

ADVANCED TECHNICAL ANALYSIS:"""

RULE_BODY = """
1. STRONG HIGHS/LOWS vs WEAK HIGHS/LOWS:
   - Strong High: Takes liquidity from previous high + breaks structure
   - Strong Low: Takes liquidity from previous low + breaks structure
   - Weak High: Fails to create higher high after bullish move
   - Weak Low: Fails to create lower low after bearish move
   - NEVER trade from weak levels - they become liquidity

2. MARKET STRUCTURE & TRADING RANGES:
   - After every break of structure = new trading range created
   - Discount (below 50%) = buy zone in uptrend
   - Premium (above 50%) = sell zone in downtrend
   - Internal Range Liquidity = swing highs/lows inside range
   - External Range Liquidity = beyond range boundaries

3. LIQUIDITY CONCEPTS:
   - Engineered Liquidity: Fake levels to trap retail traders
   - Entry ABOVE liquidity in bearish bias
   - Entry BELOW liquidity in bullish bias

4. SESSION ANALYSIS:
   - Asian Session: Consolidation, builds context for London
   - Asian Midline: Powerful confluence level
   - Judas Swing: False run opposite direction before London open
   - AMD Model: Accumulation, Manipulation, Distribution

5. SWING POINT IDENTIFICATION:
   - 3-Candle Formation: Higher low left + higher low right = swing low
   - Higher high left + higher high right = swing high
   - These are where buy/sell stops rest

6. ORDER BLOCKS & BREAKERS:
   - Order Block: Last push before opposite move
   - Breaker Block: Broken order block that becomes opposite
   - Mitigation = price returns to test the level

7. CONFLUENCE & RISK:
   - HTF POI + LTF entry alignment
   - Stop loss above/below strong levels only
   - Target internal range liquidity first, runners to external range liquidity

CRITICAL INSTRUCTIONS:
1. Identify Strong vs Weak highs/lows - NEVER trade weak levels
2. Determine current trading range and discount/premium zones
3. Locate internal/external range liquidity
4. Find confluence: HTF POI + LTF structure + liquidity + session timing
5. Prioritize higher timeframe bias with lower timeframe precision
6. Propose up to 3 web search queries that would confirm or challenge the setup"""

SINGLE_IMAGE_RESPONSE_FORMAT = """REQUIRED RESPONSE FORMAT (JSON only, no prose outside the object):
{
  "signal": {
    "action": "BUY|SELL|HOLD",
    "confidence": 0-100,
    "entryPoint": number,
    "takeProfit": [number, number, number],
    "stopLoss": number,
    "riskReward": number,
    "timeframe": "short|medium|long"
  },
  "chartAnalysis": {
    "detectedPatterns": [
      {"type": "pattern name", "confidence": 0-100, "description": "brief description"}
    ],
    "technicalIndicators": [
      {"name": "indicator name", "value": number, "signal": "bullish|bearish|neutral"}
    ],
    "supportLevels": [number],
    "resistanceLevels": [number],
    "volume": "high|medium|low",
    "trend": "uptrend|downtrend|sideways"
  },
  "reasoning": {
    "primary": "main reason for signal",
    "secondary": ["additional factors"],
    "risks": ["potential risks"],
    "catalysts": ["positive factors"]
  },
  "marketContext": {
    "symbol": "detected symbol if visible",
    "timeframe": "detected timeframe",
    "marketType": "crypto|forex|stocks|commodities"
  },
  "searchQueries": ["relevant search queries for additional market data"]
}"""

MULTI_IMAGE_RESPONSE_FORMAT = """REQUIRED RESPONSE FORMAT (JSON only, no prose outside the object):
{
  "signal": {
    "action": "BUY|SELL|HOLD",
    "confidence": 0-100,
    "entryPoint": number,
    "takeProfit": [number, number, number],
    "stopLoss": number,
    "riskReward": number,
    "timeframe": "short|medium|long"
  },
  "chartAnalysis": {
    "detectedPatterns": [
      {"type": "pattern name", "confidence": 0-100, "description": "brief description", "timeframe": "which chart(s) show this pattern"}
    ],
    "technicalIndicators": [
      {"name": "indicator name", "value": number, "signal": "bullish|bearish|neutral", "timeframe": "which chart shows this"}
    ],
    "supportLevels": [number],
    "resistanceLevels": [number],
    "volume": "high|medium|low",
    "trend": "uptrend|downtrend|sideways",
    "timeframeAlignment": "aligned|mixed|conflicting"
  },
  "reasoning": {
    "primary": "main reason considering all timeframes",
    "secondary": ["additional factors from multi-timeframe analysis"],
    "risks": ["potential risks across timeframes"],
    "catalysts": ["positive factors"]
  },
  "marketContext": {
    "symbol": "detected symbol if visible",
    "timeframes": ["detected timeframes from each chart"],
    "marketType": "crypto|forex|stocks|commodities"
  },
  "searchQueries": ["relevant search queries for additional market data"]
}"""


# =============================================================================
# REFINEMENT & CHAT PROMPTS
# =============================================================================

REFINEMENT_PROMPT_TEMPLATE = """{persona} You have performed web searches to enhance your analysis with current market data.

Your initial technical analysis:
{base_analysis}

Current market data from web search:
{web_context}

Refine your signal incorporating this real-time market data. Return ONLY the updated signal and reasoning in JSON format:

{{
  "signal": {{
    "action": "BUY|SELL|HOLD",
    "confidence": 0-100,
    "entryPoint": number,
    "takeProfit": [number],
    "stopLoss": number,
    "riskReward": number,
    "timeframe": "short|medium|long"
  }},
  "reasoning": {{
    "primary": "updated primary reason",
    "secondary": ["updated factors including web data"],
    "risks": ["updated risks"],
    "catalysts": ["updated catalysts"]
  }}
}}"""

CHAT_PROMPT_TEMPLATE = """{persona} You are continuing a conversation about a specific chart analysis you performed for this user.

ANALYSIS CONTEXT (YOU PERFORMED THIS ANALYSIS):
Signal: {signal}
Reasoning: {reasoning}
Chart Analysis: {chart_analysis}
Market Context: {market_context}
{timestamp_line}
User Question: {message}

Respond as the AI that performed this analysis, referencing your findings and maintaining context. Talk about the setup based on your analysis:"""


# =============================================================================
# Prompt builders
# =============================================================================


def _sample_line(index: int, sample: LearningSample) -> str:
    patterns = ", ".join(sample.patterns[:2]) or "no named patterns"
    line = (
        f"{index}. {sample.action} signal ({format_number(sample.confidence)}% confidence) "
        f"with patterns: {patterns}"
    )
    if sample.rating is not None:
        line += f" - User rated {sample.rating}/5"
    return line


def build_learning_section(context: Optional[LearningContext], image_count: int = 1) -> str:
    """Learned-patterns section, or an empty string when there is nothing learned."""
    if context is None or context.total_learning_points <= 0:
        return ""

    total = context.total_learning_points
    if image_count > 1:
        lines = [f"AI LEARNING CONTEXT (Multi-timeframe expertise from {total} analyses):"]
    else:
        lines = [f"AI LEARNING CONTEXT ({total} successful analyses):"]

    if context.recent_successful:
        lines.append("SUCCESSFUL PATTERNS LEARNED:")
        lines.extend(_sample_line(i, s) for i, s in enumerate(context.recent_successful, start=1))

    if context.user_specific:
        lines.append("THIS TRADER'S HIGHLY RATED ANALYSES:")
        lines.extend(_sample_line(i, s) for i, s in enumerate(context.user_specific, start=1))

    lines.append("")
    lines.append("APPLY THESE LEARNED SUCCESSFUL PATTERNS:")
    lines.append("- Prioritize pattern combinations that received 4-5 star ratings")
    lines.append("- Use similar confidence levels for similar pattern setups")
    lines.append("- Apply successful risk/reward ratios from high-rated analyses")
    return "\n".join(lines)


def build_analysis_prompt(context: Optional[LearningContext] = None, image_count: int = 1) -> str:
    """
    Assemble the model-ready analysis instruction.

    Args:
        context: Learning context (may be None or empty)
        image_count: Number of charts submitted together

    Returns:
        Complete instruction string ending with the required JSON shape
    """
    learning_section = build_learning_section(context, image_count)

    if image_count > 1:
        framing = MULTI_IMAGE_FRAMING.format(image_count=image_count)
        response_format = MULTI_IMAGE_RESPONSE_FORMAT
        closing = f"Apply Smart Money Concepts with multi-timeframe confluence analysis to all {image_count} charts:"
    else:
        framing = SINGLE_IMAGE_FRAMING
        response_format = SINGLE_IMAGE_RESPONSE_FORMAT
        closing = "Analyze using Smart Money Concepts with learned pattern recognition:"

    sections = [PERSONA]
    if learning_section:
        sections.append(learning_section)
    sections.extend([framing + RULE_BODY, response_format, closing])
    return "\n\n".join(sections)


def build_refinement_prompt(base: AnalysisResult, web_results: list[QueryResults]) -> str:
    """Second-pass prompt asking for a refined signal and reasoning only."""
    base_analysis = base.model_dump(
        mode="json",
        by_alias=True,
        include={"signal", "chart_analysis", "reasoning", "market_context"},
    )
    web_context = [
        {
            "query": qr.query,
            "data": "\n".join(f"{r.title}: {r.snippet}" for r in qr.results),
        }
        for qr in web_results
        if qr.has_results
    ]
    return REFINEMENT_PROMPT_TEMPLATE.format(
        persona=PERSONA,
        base_analysis=json.dumps(base_analysis, indent=2),
        web_context=json.dumps(web_context, indent=2),
    )


def build_chat_prompt(analysis_context: dict, message: str) -> str:
    """Follow-up chat prompt grounded on a prior analysis."""
    timestamp = analysis_context.get("timestamp")
    return CHAT_PROMPT_TEMPLATE.format(
        persona=PERSONA,
        signal=json.dumps(analysis_context.get("signal", {}), indent=2, default=str),
        reasoning=json.dumps(analysis_context.get("reasoning", {}), indent=2, default=str),
        chart_analysis=json.dumps(analysis_context.get("chartAnalysis", {}), indent=2, default=str),
        market_context=json.dumps(analysis_context.get("marketContext", {}), indent=2, default=str),
        timestamp_line=f"Analysis Date: {timestamp}\n" if timestamp else "",
        message=message.strip(),
    )
