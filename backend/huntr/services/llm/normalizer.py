"""
Response Normalizer

Turns the model's free-text answer into a strict AnalysisResult.

The model is asked for one JSON object but routinely wraps it in prose or
markdown fences, truncates it, or returns objects where strings are expected.
normalize() is total: it never raises, and whatever comes in, a fully
populated AnalysisResult comes out. "Unparseable" is reported as data
(NormalizedResponse.parsed = False), not as an exception.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from huntr.schemas.analysis import (
    AnalysisResult,
    ChartAnalysis,
    ChartMarketContext,
    MarketType,
    Reasoning,
    Signal,
    SignalAction,
    TimeframeAlignment,
    TrendDirection,
    VolumeLevel,
)

logger = logging.getLogger(__name__)

MAX_TAKE_PROFITS = 3
MAX_PATTERNS = 5
MAX_INDICATORS = 5
MAX_SEARCH_QUERIES = 3
DEFAULT_CONFIDENCE = 50.0
FALLBACK_CONFIDENCE = 30.0


@dataclass(frozen=True)
class NormalizedResponse:
    """Tagged normalizer output: parsed=True for ok, False for fallback."""

    result: AnalysisResult
    parsed: bool


# =============================================================================
# JSON extraction
# =============================================================================


def extract_json_object(text: Optional[str]) -> Optional[dict]:
    """
    Return the first-'{'-to-last-'}' substring of text decoded as a dict.

    Returns None when there is no candidate, it is not valid JSON, or it does
    not decode to an object.
    """
    if not isinstance(text, str):
        return None

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        parsed = json.loads(text[start : end + 1])
    except (ValueError, RecursionError):
        return None

    return parsed if isinstance(parsed, dict) else None


# =============================================================================
# Field coercion helpers
# =============================================================================


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_number(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Coerce ints, floats and numeric strings; reject bools, NaN and inf."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return default
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", ""))
        except ValueError:
            return default
    else:
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def _number_list(value: Any) -> list[float]:
    if not isinstance(value, list):
        return []
    numbers = [_as_number(v) for v in value]
    return [n for n in numbers if n is not None]


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if isinstance(v, (str, int, float)) and not isinstance(v, bool)]


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return default


def _enum(value: Any, enum_cls, default):
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    return default


def _action(value: Any) -> SignalAction:
    if isinstance(value, str):
        try:
            return SignalAction(value.strip().upper())
        except ValueError:
            pass
    return SignalAction.HOLD


def format_number(value: float) -> str:
    """80.0 -> '80', 72.5 -> '72.5'."""
    return str(int(value)) if float(value).is_integer() else str(value)


def clamp_confidence(value: Any, default: float = DEFAULT_CONFIDENCE) -> float:
    number = _as_number(value, default)
    return min(max(number, 0.0), 100.0)


def _take_profits(value: Any) -> list[float]:
    if isinstance(value, list):
        return _number_list(value)[:MAX_TAKE_PROFITS]
    number = _as_number(value)
    return [number if number is not None else 0.0]


def _pattern_summary(pattern: Any) -> str:
    if isinstance(pattern, str):
        return pattern
    if isinstance(pattern, dict) and pattern.get("type"):
        confidence = _as_number(pattern.get("confidence"), 0.0)
        return f"{pattern['type']} ({format_number(confidence)}% confidence)"
    return "Pattern detected"


def _indicator_summary(indicator: Any) -> str:
    if isinstance(indicator, str):
        return indicator
    if isinstance(indicator, dict) and indicator.get("name"):
        return f"{indicator['name']}: {indicator.get('signal') or 'neutral'}"
    return "Indicator detected"


def summarize_patterns(patterns: Any) -> list[str]:
    if not isinstance(patterns, list):
        return []
    return [_pattern_summary(p) for p in patterns][:MAX_PATTERNS]


def summarize_indicators(indicators: Any) -> list[str]:
    if not isinstance(indicators, list):
        return []
    return [_indicator_summary(i) for i in indicators][:MAX_INDICATORS]


# =============================================================================
# Section normalizers
# =============================================================================


def normalize_signal(data: Any) -> Signal:
    data = _as_dict(data)
    return Signal(
        action=_action(data.get("action")),
        confidence=clamp_confidence(data.get("confidence")),
        entry_point=_as_number(data.get("entryPoint"), 0.0),
        take_profit=_take_profits(data.get("takeProfit")),
        stop_loss=_as_number(data.get("stopLoss"), 0.0),
        risk_reward=_as_number(data.get("riskReward"), 1.0),
        timeframe=_text(data.get("timeframe"), "medium"),
    )


def normalize_chart_analysis(data: Any) -> ChartAnalysis:
    data = _as_dict(data)
    return ChartAnalysis(
        detected_patterns=summarize_patterns(data.get("detectedPatterns")),
        technical_indicators=summarize_indicators(data.get("technicalIndicators")),
        support_levels=_number_list(data.get("supportLevels")),
        resistance_levels=_number_list(data.get("resistanceLevels")),
        volume=_enum(data.get("volume"), VolumeLevel, VolumeLevel.MEDIUM),
        trend=_enum(data.get("trend"), TrendDirection, TrendDirection.SIDEWAYS),
        timeframe_alignment=_enum(
            data.get("timeframeAlignment"), TimeframeAlignment, TimeframeAlignment.MIXED
        ),
    )


def normalize_reasoning(data: Any) -> Reasoning:
    data = _as_dict(data)
    return Reasoning(
        primary=_text(data.get("primary"), "Technical analysis based"),
        secondary=_string_list(data.get("secondary")),
        risks=_string_list(data.get("risks")),
        catalysts=_string_list(data.get("catalysts")),
    )


def normalize_market_context(data: Any) -> ChartMarketContext:
    data = _as_dict(data)
    return ChartMarketContext(
        symbol=_text(data.get("symbol"), "Unknown"),
        timeframe=_text(data.get("timeframe"), "Unknown"),
        timeframes=_string_list(data.get("timeframes")),
        market_type=_enum(data.get("marketType"), MarketType, MarketType.UNKNOWN),
    )


def fallback_result() -> AnalysisResult:
    """Fixed result used whenever the model response cannot be parsed."""
    return AnalysisResult(
        signal=Signal(
            action=SignalAction.HOLD,
            confidence=FALLBACK_CONFIDENCE,
            entry_point=0.0,
            take_profit=[0.0],
            stop_loss=0.0,
            risk_reward=1.0,
            timeframe="medium",
        ),
        chart_analysis=ChartAnalysis(),
        reasoning=Reasoning(
            primary="Analysis parsing failed - manual review required",
            secondary=["AI response could not be processed"],
            risks=["Incomplete analysis due to parsing error"],
            catalysts=[],
        ),
        market_context=ChartMarketContext(),
        search_queries=[],
    )


# =============================================================================
# Entry points
# =============================================================================


def normalize_response(raw_text: Any) -> NormalizedResponse:
    """Normalize raw model text into a tagged ok/fallback result."""
    parsed = extract_json_object(raw_text)
    if parsed is None:
        logger.warning("Model response contained no parseable JSON object, using fallback analysis")
        return NormalizedResponse(result=fallback_result(), parsed=False)

    try:
        result = AnalysisResult(
            signal=normalize_signal(parsed.get("signal")),
            chart_analysis=normalize_chart_analysis(parsed.get("chartAnalysis")),
            reasoning=normalize_reasoning(parsed.get("reasoning")),
            market_context=normalize_market_context(parsed.get("marketContext")),
            search_queries=_string_list(parsed.get("searchQueries"))[:MAX_SEARCH_QUERIES],
        )
    except Exception as e:
        logger.error(f"Unexpected error normalizing model response: {e}")
        return NormalizedResponse(result=fallback_result(), parsed=False)

    return NormalizedResponse(result=result, parsed=True)


def normalize(raw_text: Any) -> AnalysisResult:
    """Normalize raw model text into an AnalysisResult. Never raises."""
    return normalize_response(raw_text).result
