"""
Learning Context

Feeds well-rated prior analyses back into the analysis prompt.
"""

from huntr.services.learning.context import (
    LearningContextBuilder,
    get_learning_context_builder,
)

__all__ = [
    "LearningContextBuilder",
    "get_learning_context_builder",
]
