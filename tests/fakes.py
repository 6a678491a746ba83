from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from huntr.schemas.search import SearchResult, SearchResultType
from huntr.schemas.training import FeedbackInput, TrainingStats
from huntr.services.base import SearchError
from huntr.services.llm.client import BaseVisionClient, ImagePart, ModelResponse

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def analysis_payload(**overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "signal": {
            "action": "BUY",
            "confidence": 72,
            "entryPoint": 100.5,
            "takeProfit": [105, 110],
            "stopLoss": 98,
            "riskReward": 2.5,
            "timeframe": "short",
        },
        "chartAnalysis": {
            "detectedPatterns": [{"type": "FVG", "confidence": 80}, "Bullish order block"],
            "technicalIndicators": [{"name": "RSI", "signal": "bullish"}],
            "supportLevels": [98],
            "resistanceLevels": [110],
            "volume": "high",
            "trend": "uptrend",
        },
        "reasoning": {
            "primary": "Liquidity sweep below equal lows followed by a break of structure",
            "secondary": ["Displacement candle left an FVG"],
            "risks": ["HTF resistance at 110"],
            "catalysts": [],
        },
        "marketContext": {"symbol": "BTCUSDT", "timeframe": "1H", "marketType": "crypto"},
        "searchQueries": [],
    }
    payload.update(overrides)
    return payload


def model_reply(payload: Dict[str, Any]) -> str:
    return "Here is the analysis:\n```json\n" + json.dumps(payload) + "\n```"


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(float(seconds))


@dataclass
class GenerateCall:
    variant: str
    prompt: str
    image_count: int


class ScriptedVisionClient(BaseVisionClient):
    """Returns (or raises) the scripted replies in order."""

    def __init__(self, replies: Sequence[Any]) -> None:
        self._replies = list(replies)
        self.calls: List[GenerateCall] = []

    async def generate(
        self,
        variant: str,
        prompt: str,
        image_parts: Sequence[ImagePart] = (),
    ) -> ModelResponse:
        self.calls.append(GenerateCall(variant=variant, prompt=prompt, image_count=len(image_parts)))
        if not self._replies:
            raise AssertionError("unexpected model call")
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return ModelResponse(text=reply, variant=variant)

    async def health_check(self) -> bool:
        return True


class FakeSearchService:
    """search_market_data driven by a query -> results (or exception) mapping."""

    def __init__(self, responses: Optional[Dict[str, Any]] = None, default: Any = None) -> None:
        self._responses = responses or {}
        self._default = default
        self.queries: List[str] = []

    async def search_market_data(self, query: str) -> List[SearchResult]:
        self.queries.append(query)
        response = self._responses.get(query, self._default)
        if isinstance(response, BaseException):
            raise response
        if response is None:
            raise SearchError("FakeSearchService", f"no scripted response for {query}")
        return list(response)


def search_hit(title: str, score: int = 50, type_: SearchResultType = SearchResultType.ORGANIC) -> SearchResult:
    return SearchResult(
        title=title,
        link=f"https://www.reuters.com/markets/{title.lower().replace(' ', '-')}",
        snippet=f"{title} snippet",
        source="reuters.com",
        relevance_score=score,
        timestamp=datetime.utcnow(),
        type=type_,
    )


@dataclass
class StoredAnalysis:
    user_id: str
    image_hashes: List[str]
    result: Dict[str, Any]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.utcnow)
    rating: Optional[int] = None


class InMemoryRepository:
    """Dict-backed stand-in for TrainingRepository."""

    def __init__(self) -> None:
        self.training: Dict[str, Dict[str, Any]] = {}
        self.history: Dict[str, StoredAnalysis] = {}
        self.feedback_updates: List[Dict[str, Any]] = []

    async def record_training_data(self, fingerprint, analysis, provenance, **kwargs):
        self.training.setdefault(fingerprint, {"analysis": analysis, "provenance": provenance, **kwargs})
        return self.training[fingerprint]

    async def update_feedback(
        self,
        feedback: FeedbackInput,
        fingerprint: Optional[str] = None,
        image_hashes: Optional[Sequence[str]] = None,
    ) -> int:
        self.feedback_updates.append(
            {"feedback": feedback, "fingerprint": fingerprint, "image_hashes": image_hashes}
        )
        return 1 if fingerprint in self.training else 0

    async def find_recent_high_rated(self, min_rating, since, limit):
        return []

    async def find_user_high_rated(self, user_id, min_rating, limit):
        return []

    async def save_analysis(self, user_id, analysis, image_hashes, model_variant=None, raw_response=None):
        entry = StoredAnalysis(
            user_id=user_id,
            image_hashes=list(image_hashes),
            result=analysis.model_dump(mode="json", by_alias=True),
        )
        self.history[entry.id] = entry
        return entry

    async def get_analysis(self, analysis_id, user_id=None):
        entry = self.history.get(analysis_id)
        if entry is None or (user_id is not None and entry.user_id != user_id):
            return None
        return entry

    async def update_analysis_feedback(self, analysis_id, feedback):
        entry = self.history.get(analysis_id)
        if entry is not None and feedback.rating is not None:
            entry.rating = feedback.rating
        return entry

    async def success_rate(self) -> TrainingStats:
        return TrainingStats(total=4, successful=3, success_rate=75.0)


class ExplodingRepository(InMemoryRepository):
    """Every call fails, as an unavailable database would."""

    async def record_training_data(self, *args, **kwargs):
        raise RuntimeError("database is locked")

    async def save_analysis(self, *args, **kwargs):
        raise RuntimeError("database is locked")

    async def find_recent_high_rated(self, *args, **kwargs):
        raise RuntimeError("database is locked")

    async def find_user_high_rated(self, *args, **kwargs):
        raise RuntimeError("database is locked")
