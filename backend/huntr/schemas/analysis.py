"""
CONTRACT: Chart Analysis Result

Input:  One or more chart images (+ optional user id / model hint)
Output: AnalysisResult

AnalysisResult is the canonical, always fully populated output of the
analysis pipeline. Every field has a schema-conformant default so that a
malformed model response can never surface as a partial structure.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON shape the model is instructed to produce.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from huntr.schemas.search import QueryResults


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ENUMS
# =============================================================================


class SignalAction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class VolumeLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TrendDirection(str, Enum):
    UPTREND = "uptrend"
    DOWNTREND = "downtrend"
    SIDEWAYS = "sideways"


class TimeframeAlignment(str, Enum):
    ALIGNED = "aligned"
    MIXED = "mixed"
    CONFLICTING = "conflicting"


class MarketType(str, Enum):
    CRYPTO = "crypto"
    FOREX = "forex"
    STOCKS = "stocks"
    COMMODITIES = "commodities"
    UNKNOWN = "unknown"


# =============================================================================
# INPUT
# =============================================================================


class ImageInput(BaseModel):
    """A single uploaded chart image."""

    data: bytes
    mime_type: str = "image/jpeg"
    filename: Optional[str] = None


# =============================================================================
# OUTPUT: AnalysisResult components
# =============================================================================


class Signal(CamelModel):
    """Actionable trading signal."""

    action: SignalAction = SignalAction.HOLD
    confidence: float = Field(default=50.0, ge=0.0, le=100.0)
    entry_point: float = 0.0
    take_profit: list[float] = Field(default_factory=lambda: [0.0], max_length=3)
    stop_loss: float = 0.0
    risk_reward: float = 1.0
    timeframe: str = "medium"  # short | medium | long


class ChartAnalysis(CamelModel):
    """What the model saw on the chart(s)."""

    detected_patterns: list[str] = Field(default_factory=list, max_length=5)
    technical_indicators: list[str] = Field(default_factory=list, max_length=5)
    support_levels: list[float] = Field(default_factory=list)
    resistance_levels: list[float] = Field(default_factory=list)
    volume: VolumeLevel = VolumeLevel.MEDIUM
    trend: TrendDirection = TrendDirection.SIDEWAYS
    timeframe_alignment: TimeframeAlignment = TimeframeAlignment.MIXED


class Reasoning(CamelModel):
    """Why the signal was given."""

    primary: str = "Technical analysis based"
    secondary: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    catalysts: list[str] = Field(default_factory=list)
    web_search_enhanced: bool = False


class ChartMarketContext(CamelModel):
    """Instrument and timeframe detected on the chart."""

    symbol: str = "Unknown"
    timeframe: str = "Unknown"
    timeframes: list[str] = Field(default_factory=list)
    market_type: MarketType = MarketType.UNKNOWN


class AnalysisResult(CamelModel):
    """
    Complete chart analysis.
    Returned by: Response Normalizer (and refined by Search Enrichment)
    Consumed by: Pipeline Orchestrator, Persistence Adapter, HTTP layer
    """

    signal: Signal = Field(default_factory=Signal)
    chart_analysis: ChartAnalysis = Field(default_factory=ChartAnalysis)
    reasoning: Reasoning = Field(default_factory=Reasoning)
    market_context: ChartMarketContext = Field(default_factory=ChartMarketContext)
    search_queries: list[str] = Field(default_factory=list, max_length=3)
    web_search_results: list[QueryResults] = Field(default_factory=list)
    web_search_performed: bool = False


# =============================================================================
# OUTPUT: pipeline outcomes
# =============================================================================


class AnalysisMetadata(CamelModel):
    """Provider metadata returned alongside the result."""

    model_variant: str
    latency_ms: int
    web_search_performed: bool = False
    response_parsed: bool = True
    image_count: int = 1
    fingerprints: list[str] = Field(default_factory=list)
    timestamp: datetime


class AnalysisOutcome(CamelModel):
    """What analyze_single / analyze_batch hand back to the caller."""

    analysis_id: Optional[UUID] = None
    analysis: AnalysisResult
    metadata: AnalysisMetadata
    raw_response: str = Field(default="", exclude=True)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "analysisId": "123e4567-e89b-12d3-a456-426614174000",
                "analysis": {
                    "signal": {
                        "action": "BUY",
                        "confidence": 72,
                        "entryPoint": 64250.0,
                        "takeProfit": [65100.0, 65800.0, 66500.0],
                        "stopLoss": 63700.0,
                        "riskReward": 2.4,
                        "timeframe": "short",
                    },
                    "chartAnalysis": {
                        "detectedPatterns": ["Bullish order block (78% confidence)"],
                        "technicalIndicators": ["RSI: bullish"],
                        "supportLevels": [63700.0],
                        "resistanceLevels": [65100.0],
                        "volume": "high",
                        "trend": "uptrend",
                        "timeframeAlignment": "mixed",
                    },
                    "reasoning": {
                        "primary": "Liquidity sweep below Asian low followed by structure break",
                        "secondary": [],
                        "risks": ["HTF resistance overhead"],
                        "catalysts": [],
                    },
                    "marketContext": {
                        "symbol": "BTCUSDT",
                        "timeframe": "15m",
                        "marketType": "crypto",
                    },
                    "searchQueries": ["BTCUSDT price analysis today"],
                },
                "metadata": {
                    "modelVariant": "gemini-2.5-flash",
                    "latencyMs": 8420,
                    "webSearchPerformed": True,
                },
            }
        }
    )
