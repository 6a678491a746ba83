"""
LLM Orchestration Service

CONTRACT:
    Analysis call:
        Input:  prompt + chart image parts + preferred model variant
        Output: raw model text + variant actually used

    Normalization:
        Input:  raw model text (untrusted, semi-structured)
        Output: AnalysisResult (always fully populated)

RESPONSIBILITIES:
    - Prompt assembly with learning context
    - Overload-aware retry / variant fallback (RetryPolicy)
    - Defensive parsing of model output

FALLBACK BEHAVIOR:
    - Overloaded variants fall back to the default variant
    - Unparseable responses become a fixed HOLD analysis, never an exception
"""

from huntr.services.llm.client import (
    BaseVisionClient,
    GeminiClient,
    ImagePart,
    Invocation,
    ModelInvoker,
    ModelResponse,
    RetryPolicy,
    get_model_invoker,
    is_overload_error,
)
from huntr.services.llm.normalizer import (
    NormalizedResponse,
    extract_json_object,
    fallback_result,
    normalize,
    normalize_reasoning,
    normalize_response,
    normalize_signal,
)
from huntr.services.llm.prompts import (
    build_analysis_prompt,
    build_chat_prompt,
    build_refinement_prompt,
)

__all__ = [
    # Client
    "BaseVisionClient",
    "GeminiClient",
    "ImagePart",
    "Invocation",
    "ModelInvoker",
    "ModelResponse",
    "RetryPolicy",
    "get_model_invoker",
    "is_overload_error",
    # Normalizer
    "NormalizedResponse",
    "extract_json_object",
    "fallback_result",
    "normalize",
    "normalize_reasoning",
    "normalize_response",
    "normalize_signal",
    # Prompts
    "build_analysis_prompt",
    "build_chat_prompt",
    "build_refinement_prompt",
]
