"""
SQLAlchemy models for the Huntr database.

Uses SQLite for local persistence of:
- Training corpus (content-addressed by image fingerprint)
- Per-user analysis history (feedback, chat context, learning)
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Float,
    Integer,
    DateTime,
    Boolean,
    Text,
    ForeignKey,
    Index,
    JSON,
)
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class TrainingRecord(Base):
    """
    One training sample per unique image fingerprint.
    Created by the analysis pipeline, mutated by feedback, never deleted here.
    """
    __tablename__ = "training_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # SHA-256 hex of the (first) image's bytes
    image_hash = Column(String(64), nullable=False, unique=True, index=True)
    image_metadata = Column(JSON, nullable=True)  # {"format": "png", "size": 123456}

    multi_image = Column(Boolean, default=False)
    image_count = Column(Integer, default=1)

    # Analysis snapshots
    chart_analysis = Column(JSON, nullable=False)  # {"detectedPatterns": [...], "trend": ...}
    ai_analysis = Column(JSON, nullable=False)  # {"signal": {...}, "reasoning": {...}, ...}
    market_context = Column(JSON, nullable=True)  # {"symbol": ..., "marketType": ...}

    # Denormalised for filtering
    action = Column(String(10), nullable=False, index=True)  # BUY, SELL, HOLD
    confidence = Column(Float, nullable=False)
    symbol = Column(String(40), nullable=True)
    market_type = Column(String(20), nullable=True)
    model_variant = Column(String(60), nullable=True)
    raw_response = Column(Text, nullable=True)

    # Feedback (empty until the user rates the analysis)
    user_rating = Column(Integer, nullable=True, index=True)
    user_comments = Column(Text, nullable=True)
    feedback_submitted_at = Column(DateTime, nullable=True)
    use_for_training = Column(Boolean, default=True)

    # Outcome tracking
    actual_outcome = Column(String(20), nullable=True)  # success, failure, pending, timeout
    price_change_24h = Column(Float, nullable=True)
    follow_up_date = Column(DateTime, nullable=True)

    # Provenance
    user_id = Column(String(50), nullable=False, default="anonymous", index=True)
    user_opted_in = Column(Boolean, nullable=False, default=True)
    session_id = Column(String(64), nullable=True)
    ip_hash = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Per-image fingerprints (multi-image analyses)
    image_hashes = relationship(
        "TrainingImageHash",
        back_populates="record",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_training_rating_created", "user_rating", "created_at"),
    )


class TrainingImageHash(Base):
    """
    Membership of an image fingerprint in a training record's image set.
    Lets feedback on a multi-image analysis find its record by any image.
    """
    __tablename__ = "training_image_hashes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(String(36), ForeignKey("training_records.id"), nullable=False, index=True)
    image_hash = Column(String(64), nullable=False, index=True)
    position = Column(Integer, default=0)

    record = relationship("TrainingRecord", back_populates="image_hashes")


class AnalysisHistory(Base):
    """
    Analyses delivered to a user.
    Source of the user's own learning samples, feedback and chat context.
    """
    __tablename__ = "analysis_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(50), nullable=False, index=True)

    image_hashes = Column(JSON, nullable=False)  # ["<sha256>", ...]
    image_count = Column(Integer, default=1)

    # Full AnalysisResult (camelCase JSON)
    result = Column(JSON, nullable=False)
    action = Column(String(10), nullable=False)
    confidence = Column(Float, nullable=False)
    model_variant = Column(String(60), nullable=True)
    web_search_performed = Column(Boolean, default=False)
    raw_response = Column(Text, nullable=True)

    # Feedback
    rating = Column(Integer, nullable=True)
    comments = Column(Text, nullable=True)
    actual_outcome = Column(String(20), nullable=True)
    price_change = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_history_user_rating", "user_id", "rating"),
    )
