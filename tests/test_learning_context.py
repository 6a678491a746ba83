from __future__ import annotations

import json

import pytest

from huntr.schemas.training import FeedbackInput, Provenance
from huntr.services.analysis.validation import fingerprint
from huntr.services.learning.context import LearningContextBuilder
from huntr.services.llm.normalizer import normalize
from huntr.services.llm.prompts import build_analysis_prompt

from fakes import ExplodingRepository, analysis_payload


def _builder(repository) -> LearningContextBuilder:
    return LearningContextBuilder(repository, window_days=30, recent_limit=10, user_limit=5, min_rating=4)


@pytest.mark.asyncio
async def test_context_from_rated_records_and_user_history(repository) -> None:
    analysis = normalize(json.dumps(analysis_payload()))
    for i, rating in enumerate((5, 2)):
        h = fingerprint(f"chart-{i}".encode())
        await repository.record_training_data(h, analysis, Provenance())
        await repository.update_feedback(FeedbackInput(rating=rating), fingerprint=h)
    entry = await repository.save_analysis("trader-1", analysis, [fingerprint(b"chart-0")])
    await repository.update_analysis_feedback(entry.id, FeedbackInput(rating=4))

    context = await _builder(repository).build("trader-1")

    assert len(context.recent_successful) == 1
    assert len(context.user_specific) == 1
    assert context.total_learning_points == 2
    sample = context.recent_successful[0]
    assert sample.action == "BUY"
    assert sample.rating == 5
    assert sample.patterns[:2] == ["FVG (80% confidence)", "Bullish order block"]
    assert context.user_specific[0].rating == 4

    prompt = build_analysis_prompt(context)
    assert "AI LEARNING CONTEXT (2 successful analyses):" in prompt


@pytest.mark.asyncio
async def test_anonymous_request_skips_user_history(repository) -> None:
    analysis = normalize(json.dumps(analysis_payload()))
    entry = await repository.save_analysis("trader-1", analysis, [fingerprint(b"x")])
    await repository.update_analysis_feedback(entry.id, FeedbackInput(rating=5))

    context = await _builder(repository).build(None)
    assert context.user_specific == []
    assert context.total_learning_points == 0


@pytest.mark.asyncio
async def test_read_failure_yields_empty_context() -> None:
    context = await _builder(ExplodingRepository()).build("trader-1")
    assert context.total_learning_points == 0
    assert build_analysis_prompt(context) == build_analysis_prompt(None)
