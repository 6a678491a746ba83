from __future__ import annotations

from datetime import datetime

from huntr.schemas.analysis import AnalysisResult
from huntr.schemas.search import QueryResults, SearchResultType
from huntr.schemas.training import LearningContext, LearningSample
from huntr.services.llm.prompts import (
    RULE_BODY,
    build_analysis_prompt,
    build_chat_prompt,
    build_learning_section,
    build_refinement_prompt,
)

from fakes import search_hit


def _context() -> LearningContext:
    return LearningContext(
        recent_successful=[
            LearningSample(action="BUY", confidence=80, patterns=["FVG (80% confidence)", "BOS", "CHoCH"], rating=5),
            LearningSample(action="SELL", confidence=64.5, patterns=[], rating=4),
        ],
        user_specific=[
            LearningSample(action="HOLD", confidence=55, patterns=["Range"], rating=4),
        ],
    )


def test_learning_section_omitted_without_learning_points() -> None:
    assert build_learning_section(None) == ""
    assert build_learning_section(LearningContext.empty()) == ""
    prompt = build_analysis_prompt(LearningContext.empty())
    assert "AI LEARNING CONTEXT" not in prompt
    assert prompt == build_analysis_prompt(None)


def test_learning_section_lists_records_and_user_history() -> None:
    prompt = build_analysis_prompt(_context())
    assert "AI LEARNING CONTEXT (3 successful analyses):" in prompt
    assert "1. BUY signal (80% confidence) with patterns: FVG (80% confidence), BOS - User rated 5/5" in prompt
    assert "2. SELL signal (64.5% confidence)" in prompt
    assert "THIS TRADER'S HIGHLY RATED ANALYSES:" in prompt
    assert "1. HOLD signal (55% confidence) with patterns: Range - User rated 4/5" in prompt
    # Only the top two patterns are listed
    assert "CHoCH" not in prompt


def test_rule_body_shared_between_single_and_multi_image() -> None:
    single = build_analysis_prompt(None, image_count=1)
    multi = build_analysis_prompt(None, image_count=3)
    assert RULE_BODY in single
    assert RULE_BODY in multi
    assert "MULTI-TIMEFRAME" not in single
    assert "analyzing 3 chart images" in multi
    assert '"timeframeAlignment"' in multi
    assert '"timeframeAlignment"' not in single


def test_prompt_ends_with_response_shape() -> None:
    prompt = build_analysis_prompt(None)
    assert "REQUIRED RESPONSE FORMAT" in prompt
    assert prompt.index("REQUIRED RESPONSE FORMAT") > prompt.index(RULE_BODY)
    assert '"searchQueries"' in prompt


def test_refinement_prompt_skips_placeholder_only_queries() -> None:
    now = datetime.utcnow()
    results = [
        QueryResults(query="BTC price analysis", results=[search_hit("ETF inflows surge")], timestamp=now),
        QueryResults(
            query="BTC sentiment",
            results=[search_hit("Search temporarily unavailable", 0, SearchResultType.FALLBACK)],
            timestamp=now,
        ),
    ]
    prompt = build_refinement_prompt(AnalysisResult(), results)
    assert "ETF inflows surge: ETF inflows surge snippet" in prompt
    assert "BTC sentiment" not in prompt
    assert '"chartAnalysis"' in prompt


def test_chat_prompt_grounded_on_prior_analysis() -> None:
    context = AnalysisResult().model_dump(mode="json", by_alias=True)
    context["timestamp"] = "2025-01-05T10:00:00"
    prompt = build_chat_prompt(context, "  Where should my stop go?  ")
    assert "User Question: Where should my stop go?" in prompt
    assert "Analysis Date: 2025-01-05T10:00:00" in prompt
    assert '"action": "HOLD"' in prompt
