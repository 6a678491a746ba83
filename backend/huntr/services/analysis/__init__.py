"""
Chart Analysis Pipeline

CONTRACT:
    Input:  1..5 chart images + optional user id / preferred model variant
    Output: AnalysisOutcome (AnalysisResult + metadata)

RESPONSIBILITIES:
    - Validate uploads and fingerprint them
    - Bias the prompt with well-rated prior analyses
    - Invoke the model with overload-aware retry/fallback
    - Normalize untrusted model output into a complete result
    - Record training samples and apply feedback
    - Answer follow-up chat about a prior analysis

FAILURE POLICY:
    Validation and provider failures are terminal.
    Persistence and web search failures never fail a request.
"""

from huntr.services.analysis.interface import AnalysisRequest, AnalysisServiceInterface
from huntr.services.analysis.service import AnalysisPipeline, get_analysis_pipeline
from huntr.services.analysis.validation import fingerprint, hash_ip, validate_image

__all__ = [
    "AnalysisRequest",
    "AnalysisServiceInterface",
    "AnalysisPipeline",
    "get_analysis_pipeline",
    "fingerprint",
    "hash_ip",
    "validate_image",
]
