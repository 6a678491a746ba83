"""
Learning Context Builder

Collects a bounded sample of well-rated prior analyses to bias the next
prompt: recent corpus records plus, for a known user, their own history.

Best effort only. A read failure yields an empty context and a warning;
the analysis proceeds without learned patterns.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from huntr.core.config import settings
from huntr.schemas.training import LearningContext, LearningSample

logger = logging.getLogger(__name__)


def _patterns_from(chart_analysis: Any) -> list[str]:
    if not isinstance(chart_analysis, dict):
        return []
    patterns = chart_analysis.get("detectedPatterns") or []
    return [str(p) for p in patterns if p]


def sample_from_record(record) -> LearningSample:
    """LearningSample from a TrainingRecord row."""
    return LearningSample(
        action=record.action,
        confidence=record.confidence,
        patterns=_patterns_from(record.chart_analysis),
        rating=record.user_rating,
        multi_image=bool(record.multi_image),
        created_at=record.created_at,
    )


def sample_from_history(entry) -> LearningSample:
    """LearningSample from an AnalysisHistory row."""
    result = entry.result if isinstance(entry.result, dict) else {}
    return LearningSample(
        action=entry.action,
        confidence=entry.confidence,
        patterns=_patterns_from(result.get("chartAnalysis")),
        rating=entry.rating,
        multi_image=(entry.image_count or 1) > 1,
        created_at=entry.created_at,
    )


class LearningContextBuilder:
    """Builds a LearningContext from the training repository."""

    def __init__(
        self,
        repository=None,
        window_days: Optional[int] = None,
        recent_limit: Optional[int] = None,
        user_limit: Optional[int] = None,
        min_rating: Optional[int] = None,
    ):
        self._repository = repository
        self.window_days = window_days if window_days is not None else settings.learning_window_days
        self.recent_limit = recent_limit if recent_limit is not None else settings.learning_recent_limit
        self.user_limit = user_limit if user_limit is not None else settings.learning_user_limit
        self.min_rating = min_rating if min_rating is not None else settings.learning_min_rating

    @property
    def repository(self):
        if self._repository is None:
            from huntr.services.training.repository import get_training_repository

            self._repository = get_training_repository()
        return self._repository

    async def build(self, user_id: Optional[str] = None) -> LearningContext:
        """Never raises."""
        try:
            since = datetime.utcnow() - timedelta(days=self.window_days)
            records = await self.repository.find_recent_high_rated(
                self.min_rating, since, self.recent_limit
            )
            history = []
            if user_id:
                history = await self.repository.find_user_high_rated(
                    user_id, self.min_rating, self.user_limit
                )

            context = LearningContext(
                recent_successful=[sample_from_record(r) for r in records],
                user_specific=[sample_from_history(h) for h in history],
            )
        except Exception as e:
            logger.warning(f"Error getting learning context: {e}")
            return LearningContext.empty()

        if context.total_learning_points:
            logger.info(f"Learning context: {context.to_dict()}")
        return context


# Singleton instance
_builder: Optional[LearningContextBuilder] = None


def get_learning_context_builder() -> LearningContextBuilder:
    """Get or create the learning context builder singleton."""
    global _builder
    if _builder is None:
        _builder = LearningContextBuilder()
    return _builder
