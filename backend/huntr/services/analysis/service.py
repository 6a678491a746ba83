"""
Chart Analysis Pipeline Implementation

Sequences validation, learning context, model invocation, normalization,
best-effort persistence and optional web-search enrichment.

Only ValidationError, ProviderExhaustedError and ProviderError escape.
Persistence and enrichment failures are logged and absorbed.
"""

import logging
import time
from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import UUID

from huntr.schemas.analysis import (
    AnalysisMetadata,
    AnalysisOutcome,
    AnalysisResult,
    ImageInput,
)
from huntr.schemas.training import FeedbackInput, FeedbackOutcome, Provenance, TrainingStats
from huntr.services.analysis.interface import AnalysisRequest, AnalysisServiceInterface
from huntr.services.analysis.validation import (
    fingerprint,
    validate_batch_size,
    validate_image,
    validate_rating,
)
from huntr.services.base import PersistenceError, ValidationError
from huntr.services.learning.context import LearningContextBuilder, get_learning_context_builder
from huntr.services.llm.client import ImagePart, ModelInvoker, RetryPolicy
from huntr.services.llm.normalizer import normalize_response
from huntr.services.llm.prompts import build_analysis_prompt, build_chat_prompt
from huntr.services.search.enrichment import SearchEnrichment
from huntr.services.training.repository import TrainingRepository

logger = logging.getLogger(__name__)


def _image_metadata(images: Sequence[ImageInput]) -> dict:
    return {
        "images": [
            {
                "format": image.mime_type.split("/")[-1],
                "size": len(image.data),
                "filename": image.filename,
            }
            for image in images
        ]
    }


class AnalysisPipeline(AnalysisServiceInterface):
    """
    Chart Analysis Pipeline.

    Validating -> Invoking -> Normalizing -> Persisting -> (Enriching) -> Done
    """

    def __init__(
        self,
        invoker: ModelInvoker,
        repository: TrainingRepository,
        learning: Optional[LearningContextBuilder] = None,
        enrichment: Optional[SearchEnrichment] = None,
    ):
        self.invoker = invoker
        self.repository = repository
        self.learning = learning or LearningContextBuilder(repository)
        self.enrichment = enrichment

    @property
    def name(self) -> str:
        return "AnalysisPipeline"

    async def execute(self, input_data: AnalysisRequest) -> AnalysisOutcome:
        images = list(input_data.images)
        if len(images) == 1:
            return await self.analyze_single(
                images[0].data,
                images[0].mime_type,
                user_id=input_data.user_id,
                preferred_variant=input_data.preferred_variant,
                provenance=input_data.provenance,
            )
        return await self.analyze_batch(
            images,
            user_id=input_data.user_id,
            preferred_variant=input_data.preferred_variant,
            provenance=input_data.provenance,
        )

    async def analyze_single(
        self,
        image_bytes: bytes,
        mime_type: str,
        user_id: Optional[str] = None,
        preferred_variant: Optional[str] = None,
        provenance: Optional[Provenance] = None,
    ) -> AnalysisOutcome:
        validate_image(image_bytes, mime_type)
        images = [ImageInput(data=image_bytes, mime_type=mime_type)]
        return await self._run(
            images, user_id, preferred_variant, provenance, self.invoker.single_policy()
        )

    async def analyze_batch(
        self,
        images: Sequence[ImageInput],
        user_id: Optional[str] = None,
        preferred_variant: Optional[str] = None,
        provenance: Optional[Provenance] = None,
    ) -> AnalysisOutcome:
        images = list(images)
        validate_batch_size(len(images))
        for image in images:
            validate_image(image.data, image.mime_type)
        return await self._run(
            images, user_id, preferred_variant, provenance, self.invoker.batch_policy()
        )

    async def _run(
        self,
        images: list[ImageInput],
        user_id: Optional[str],
        preferred_variant: Optional[str],
        provenance: Optional[Provenance],
        policy: RetryPolicy,
    ) -> AnalysisOutcome:
        start = time.perf_counter()
        image_count = len(images)
        fingerprints = [fingerprint(image.data) for image in images]

        context = await self.learning.build(user_id)
        prompt = build_analysis_prompt(context, image_count=image_count)
        parts = [ImagePart(data=image.data, mime_type=image.mime_type) for image in images]

        invocation = await self.invoker.invoke(
            prompt,
            parts,
            preferred_variant=preferred_variant,
            policy=policy,
        )
        logger.info(
            f"Model {invocation.variant} answered in {invocation.latency_ms}ms "
            f"after {invocation.attempts} attempt(s) for {image_count} image(s)"
        )

        normalized = normalize_response(invocation.text)
        analysis = normalized.result

        await self._record_training(
            analysis,
            fingerprints,
            images,
            provenance or Provenance(user_id=user_id or "anonymous"),
            invocation.text,
            invocation.variant,
        )

        if analysis.search_queries and self.enrichment is not None:
            outcome = await self.enrichment.enrich(
                analysis.search_queries, analysis, preferred_variant=invocation.variant
            )
            analysis = outcome.apply_to(analysis)

        analysis_id = None
        if user_id:
            analysis_id = await self._save_history(
                user_id, analysis, fingerprints, invocation.variant, invocation.text
            )

        metadata = AnalysisMetadata(
            model_variant=invocation.variant,
            latency_ms=int((time.perf_counter() - start) * 1000),
            web_search_performed=analysis.web_search_performed,
            response_parsed=normalized.parsed,
            image_count=image_count,
            fingerprints=fingerprints,
            timestamp=datetime.utcnow(),
        )
        return AnalysisOutcome(
            analysis_id=analysis_id,
            analysis=analysis,
            metadata=metadata,
            raw_response=invocation.text,
        )

    async def _record_training(
        self,
        analysis: AnalysisResult,
        fingerprints: list[str],
        images: list[ImageInput],
        provenance: Provenance,
        raw_response: str,
        model_variant: str,
    ) -> None:
        if not provenance.user_opted_in:
            return
        try:
            await self.repository.record_training_data(
                fingerprints[0],
                analysis,
                provenance,
                image_hashes=fingerprints if len(fingerprints) > 1 else None,
                image_metadata=_image_metadata(images),
                raw_response=raw_response,
                model_variant=model_variant,
            )
        except Exception as e:
            logger.error(f"Failed to store training data: {e}")

    async def _save_history(
        self,
        user_id: str,
        analysis: AnalysisResult,
        fingerprints: list[str],
        model_variant: str,
        raw_response: str,
    ) -> Optional[UUID]:
        try:
            entry = await self.repository.save_analysis(
                user_id,
                analysis,
                fingerprints,
                model_variant=model_variant,
                raw_response=raw_response,
            )
            return UUID(entry.id)
        except Exception as e:
            logger.error(f"Failed to save analysis history: {e}")
            return None

    # ============ Feedback ============

    async def refresh_feedback(
        self,
        identifier: str,
        feedback: FeedbackInput,
        user_id: Optional[str] = None,
    ) -> FeedbackOutcome:
        """
        Apply feedback to an analysis and its training sample(s).

        The identifier is resolved as an analysis-history id first; when no
        entry matches it is treated as an image fingerprint.
        """
        validate_rating(feedback.rating)

        analysis_found = False
        hashes: list[str] = []
        try:
            entry = await self.repository.get_analysis(identifier, user_id)
            if entry is not None:
                analysis_found = True
                hashes = list(entry.image_hashes or [])
                await self.repository.update_analysis_feedback(entry.id, feedback)
        except PersistenceError as e:
            logger.error(f"Failed to update analysis feedback: {e}")

        updated = 0
        try:
            if hashes:
                updated = await self.repository.update_feedback(
                    feedback,
                    fingerprint=hashes[0],
                    image_hashes=hashes if len(hashes) > 1 else None,
                )
            else:
                updated = await self.repository.update_feedback(feedback, fingerprint=identifier)
        except PersistenceError as e:
            logger.error(f"Failed to update training data feedback: {e}")

        logger.info(f"Feedback for {identifier}: analysis_found={analysis_found}, training_updated={updated}")
        return FeedbackOutcome(
            identifier=identifier,
            analysis_found=analysis_found,
            training_records_updated=updated,
            feedback=feedback,
        )

    # ============ Chat ============

    async def get_analysis_context(
        self,
        analysis_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """Stored analysis (camelCase) plus its timestamp, or None."""
        try:
            entry = await self.repository.get_analysis(analysis_id, user_id)
        except PersistenceError as e:
            logger.error(f"Failed to load analysis {analysis_id}: {e}")
            return None
        if entry is None:
            return None
        context = dict(entry.result or {})
        if entry.created_at is not None:
            context["timestamp"] = entry.created_at.isoformat()
        return context

    async def chat(
        self,
        prior_analysis_context: dict[str, Any],
        message: str,
        user_id: Optional[str] = None,
        preferred_variant: Optional[str] = None,
    ) -> str:
        if not message or not message.strip():
            raise ValidationError(self.name, "Message is required")

        prompt = build_chat_prompt(prior_analysis_context or {}, message)
        invocation = await self.invoker.invoke(
            prompt,
            preferred_variant=preferred_variant,
            policy=self.invoker.single_policy(),
        )
        return invocation.text.strip()

    # ============ Statistics ============

    async def training_stats(self) -> TrainingStats:
        try:
            return await self.repository.success_rate()
        except PersistenceError as e:
            logger.error(f"Failed to compute training statistics: {e}")
            return TrainingStats()

    async def health_check(self) -> bool:
        return await self.invoker.client.health_check()


# Singleton instance
_pipeline: Optional[AnalysisPipeline] = None


def get_analysis_pipeline() -> AnalysisPipeline:
    """Get or create the analysis pipeline singleton."""
    global _pipeline
    if _pipeline is None:
        from huntr.services.llm.client import get_model_invoker
        from huntr.services.search.service import get_search_service
        from huntr.services.training.repository import get_training_repository

        invoker = get_model_invoker()
        repository = get_training_repository()
        _pipeline = AnalysisPipeline(
            invoker=invoker,
            repository=repository,
            learning=get_learning_context_builder(),
            enrichment=SearchEnrichment(get_search_service(), invoker),
        )
    return _pipeline
