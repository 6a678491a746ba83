"""
Database module for Huntr.

Provides SQLite database models. The engine and session factory live in
huntr.db.database and are created on first import of that module.
"""

from huntr.db.models import Base, TrainingRecord, TrainingImageHash, AnalysisHistory

__all__ = [
    "Base",
    "TrainingRecord",
    "TrainingImageHash",
    "AnalysisHistory",
]
