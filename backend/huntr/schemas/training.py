"""
CONTRACT: Learning & Feedback

Inputs and views for the training corpus:
- FeedbackInput: user feedback on a delivered analysis
- Provenance: where a training sample came from (anonymised)
- LearningContext: bounded sample of well-rated history used to bias prompts
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ActualOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"
    TIMEOUT = "timeout"


class FeedbackInput(BaseModel):
    """
    Feedback submitted for an analysis.

    Rating is range-checked by the orchestrator so that an out-of-range value
    surfaces as a ValidationError rather than a schema error.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    rating: Optional[int] = None
    comments: Optional[str] = None
    actual_outcome: Optional[ActualOutcome] = None
    price_change: Optional[float] = None


class FeedbackOutcome(BaseModel):
    """Result of a feedback refresh."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    identifier: str
    analysis_found: bool = False
    training_records_updated: int = 0
    feedback: FeedbackInput


class Provenance(BaseModel):
    """Anonymised origin of a training sample."""

    user_id: str = "anonymous"
    user_opted_in: bool = True
    session_id: Optional[str] = None
    ip_hash: Optional[str] = None
    user_agent: Optional[str] = None


class TrainingStats(BaseModel):
    """Corpus outcome statistics."""

    total: int = 0
    successful: int = 0
    success_rate: float = Field(default=0.0, ge=0.0, le=100.0)


@dataclass
class LearningSample:
    """One prior analysis used to bias the prompt."""

    action: str
    confidence: float
    patterns: list[str] = field(default_factory=list)
    rating: Optional[int] = None
    multi_image: bool = False
    created_at: Optional[datetime] = None


@dataclass
class LearningContext:
    """
    Ephemeral learning context, built per request.

    recent_successful: corpus records rated >= threshold, newest first
    user_specific: the requesting user's own well-rated history
    """

    recent_successful: list[LearningSample] = field(default_factory=list)
    user_specific: list[LearningSample] = field(default_factory=list)

    @property
    def total_learning_points(self) -> int:
        return len(self.recent_successful) + len(self.user_specific)

    @classmethod
    def empty(cls) -> "LearningContext":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "recent_successful": len(self.recent_successful),
            "user_specific": len(self.user_specific),
            "total_learning_points": self.total_learning_points,
        }
