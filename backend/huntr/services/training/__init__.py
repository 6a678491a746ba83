"""
Training Corpus Service

Persists analyses as training samples (deduplicated by image fingerprint)
and applies user feedback and outcomes to them.
"""

from huntr.services.training.repository import (
    TrainingRepository,
    get_training_repository,
)

__all__ = [
    "TrainingRepository",
    "get_training_repository",
]
