"""
Chart Analysis Service Interface

Defines the contract for the analysis pipeline.
"""

from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from huntr.schemas.analysis import AnalysisOutcome, ImageInput
from huntr.schemas.training import FeedbackInput, FeedbackOutcome, Provenance
from huntr.services.base import BaseService


@dataclass
class AnalysisRequest:
    """Input for chart analysis."""

    images: Sequence[ImageInput]
    user_id: Optional[str] = None
    preferred_variant: Optional[str] = None
    provenance: Optional[Provenance] = None


class AnalysisServiceInterface(BaseService[AnalysisRequest, AnalysisOutcome]):
    """
    Chart Analysis Pipeline Contract.

    INPUT: AnalysisRequest
        - images: 1..5 chart screenshots (JPEG, PNG or WebP, <= 10MB each)
        - user_id: Optional, enables the user's own learning samples and history
        - preferred_variant: Model variant to try first

    OUTPUT: AnalysisOutcome
        - analysis: Fully populated AnalysisResult (never partial)
        - metadata: Variant used, latency, enrichment and parse flags

    STAGES (in order):
        1. Validate images
        2. Build learning context (best effort)
        3. Invoke model under the retry policy
        4. Normalize response (total)
        5. Persist training sample (best effort)
        6. Web search enrichment (best effort)
        7. Save user history (best effort)

    TERMINAL ERRORS: ValidationError, ProviderExhaustedError, ProviderError.
    Everything else degrades.
    """

    @property
    def name(self) -> str:
        return "AnalysisService"

    @abstractmethod
    async def execute(self, input_data: AnalysisRequest) -> AnalysisOutcome:
        """Analyze one or more charts."""
        pass

    @abstractmethod
    async def analyze_single(
        self,
        image_bytes: bytes,
        mime_type: str,
        user_id: Optional[str] = None,
        preferred_variant: Optional[str] = None,
        provenance: Optional[Provenance] = None,
    ) -> AnalysisOutcome:
        """Analyze a single chart image."""
        pass

    @abstractmethod
    async def analyze_batch(
        self,
        images: Sequence[ImageInput],
        user_id: Optional[str] = None,
        preferred_variant: Optional[str] = None,
        provenance: Optional[Provenance] = None,
    ) -> AnalysisOutcome:
        """Analyze 1..5 charts of the same instrument together (multi-timeframe)."""
        pass

    @abstractmethod
    async def refresh_feedback(
        self,
        identifier: str,
        feedback: FeedbackInput,
        user_id: Optional[str] = None,
    ) -> FeedbackOutcome:
        """Apply feedback to an analysis (by history id) or training sample (by fingerprint)."""
        pass

    @abstractmethod
    async def chat(
        self,
        prior_analysis_context: dict[str, Any],
        message: str,
        user_id: Optional[str] = None,
        preferred_variant: Optional[str] = None,
    ) -> str:
        """Answer a follow-up question about a prior analysis."""
        pass
