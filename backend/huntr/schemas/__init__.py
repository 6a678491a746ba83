"""
Huntr Schema Contracts

This module defines all JSON contracts between system components.
These are the authoritative interfaces - all modules must conform to these schemas.
"""

from huntr.schemas.search import (
    SearchResult,
    SearchResultType,
    QueryResults,
)
from huntr.schemas.analysis import (
    ImageInput,
    SignalAction,
    VolumeLevel,
    TrendDirection,
    TimeframeAlignment,
    MarketType,
    Signal,
    ChartAnalysis,
    Reasoning,
    ChartMarketContext,
    AnalysisResult,
    AnalysisMetadata,
    AnalysisOutcome,
)
from huntr.schemas.training import (
    ActualOutcome,
    FeedbackInput,
    FeedbackOutcome,
    Provenance,
    TrainingStats,
    LearningSample,
    LearningContext,
)

__all__ = [
    # Search
    "SearchResult",
    "SearchResultType",
    "QueryResults",
    # Analysis
    "ImageInput",
    "SignalAction",
    "VolumeLevel",
    "TrendDirection",
    "TimeframeAlignment",
    "MarketType",
    "Signal",
    "ChartAnalysis",
    "Reasoning",
    "ChartMarketContext",
    "AnalysisResult",
    "AnalysisMetadata",
    "AnalysisOutcome",
    # Training
    "ActualOutcome",
    "FeedbackInput",
    "FeedbackOutcome",
    "Provenance",
    "TrainingStats",
    "LearningSample",
    "LearningContext",
]
