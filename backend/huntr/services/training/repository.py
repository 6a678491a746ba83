"""
Training Corpus Repository (Persistence Adapter)

Writes training samples keyed by image fingerprint, applies feedback and
outcome updates, and serves the reads behind the learning context.

Every database failure is raised as PersistenceError. Callers on the analysis
path catch it and log; the user-facing result never depends on persistence.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from huntr.db.models import AnalysisHistory, TrainingImageHash, TrainingRecord
from huntr.schemas.analysis import AnalysisResult
from huntr.schemas.training import ActualOutcome, FeedbackInput, Provenance, TrainingStats
from huntr.services.base import PersistenceError

logger = logging.getLogger(__name__)


class TrainingRepository:
    """
    Repository for the training corpus and per-user analysis history.

    record_training_data is insert-if-absent: a second upload of the same
    image returns the existing record instead of adding a duplicate row.

    Sessions run one at a time. The SQLite engine hands every session the
    same connection, so interleaved transactions would commit or roll back
    each other's work.
    """

    name = "TrainingRepository"

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory
        self._lock = asyncio.Lock()

    @property
    def session_factory(self) -> async_sessionmaker:
        """Lazy binding to the application database."""
        if self._session_factory is None:
            from huntr.db.database import AsyncSessionLocal

            self._session_factory = AsyncSessionLocal
        return self._session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self._lock, self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # ============ Training corpus ============

    async def get_by_fingerprint(self, fingerprint: str) -> Optional[TrainingRecord]:
        try:
            async with self._session() as session:
                result = await session.execute(
                    select(TrainingRecord).where(TrainingRecord.image_hash == fingerprint)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, f"Failed to load training record: {e}") from e

    async def record_training_data(
        self,
        fingerprint: str,
        analysis: AnalysisResult,
        provenance: Provenance,
        image_hashes: Optional[Sequence[str]] = None,
        image_metadata: Optional[dict] = None,
        raw_response: Optional[str] = None,
        model_variant: Optional[str] = None,
    ) -> TrainingRecord:
        """
        Store an analysis as a training sample unless the fingerprint exists.

        Returns the new record, or the existing one for a repeated image.
        """
        hashes = list(image_hashes) if image_hashes else [fingerprint]
        snapshot = analysis.model_dump(mode="json", by_alias=True)

        try:
            async with self._session() as session:
                existing = (
                    await session.execute(
                        select(TrainingRecord).where(TrainingRecord.image_hash == fingerprint)
                    )
                ).scalar_one_or_none()
                if existing is not None:
                    logger.info(f"Training data already exists for image {fingerprint[:12]}")
                    return existing

                record = TrainingRecord(
                    image_hash=fingerprint,
                    image_metadata=image_metadata,
                    multi_image=len(hashes) > 1,
                    image_count=len(hashes),
                    chart_analysis=snapshot["chartAnalysis"],
                    ai_analysis={
                        "signal": snapshot["signal"],
                        "reasoning": snapshot["reasoning"],
                        "confidence": snapshot["signal"]["confidence"],
                        "webSearchResults": snapshot["webSearchResults"],
                        "timestamp": datetime.utcnow().isoformat(),
                    },
                    market_context=snapshot["marketContext"],
                    action=analysis.signal.action.value,
                    confidence=analysis.signal.confidence,
                    symbol=analysis.market_context.symbol,
                    market_type=analysis.market_context.market_type.value,
                    model_variant=model_variant,
                    raw_response=raw_response,
                    user_id=provenance.user_id,
                    user_opted_in=provenance.user_opted_in,
                    session_id=provenance.session_id,
                    ip_hash=provenance.ip_hash,
                    user_agent=provenance.user_agent,
                )
                record.image_hashes = [
                    TrainingImageHash(image_hash=h, position=i) for i, h in enumerate(hashes)
                ]
                session.add(record)
                await session.flush()
            logger.info(f"Stored training record {record.id} for image {fingerprint[:12]}")
            return record
        except IntegrityError:
            # Lost a race with a concurrent insert of the same fingerprint
            existing = await self.get_by_fingerprint(fingerprint)
            if existing is not None:
                return existing
            raise PersistenceError(self.name, f"Training record insert conflict for {fingerprint[:12]}")
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, f"Failed to store training record: {e}") from e

    async def update_feedback(
        self,
        feedback: FeedbackInput,
        fingerprint: Optional[str] = None,
        image_hashes: Optional[Sequence[str]] = None,
    ) -> int:
        """
        Apply feedback/outcome fields to matching training records.

        Matches one record by fingerprint and/or every record whose image set
        contains any of image_hashes. Only fields present in feedback are
        written. Returns the number of records updated.
        """
        now = datetime.utcnow()
        values: dict = {}
        if feedback.rating is not None:
            values["user_rating"] = feedback.rating
            values["feedback_submitted_at"] = now
        if feedback.comments is not None:
            values["user_comments"] = feedback.comments
        if feedback.actual_outcome is not None:
            values["actual_outcome"] = feedback.actual_outcome.value
            values["follow_up_date"] = now
        if feedback.price_change is not None:
            values["price_change_24h"] = feedback.price_change

        conditions = []
        if fingerprint:
            conditions.append(TrainingRecord.image_hash == fingerprint)
        if image_hashes:
            members = select(TrainingImageHash.record_id).where(
                TrainingImageHash.image_hash.in_(list(image_hashes))
            )
            conditions.append(TrainingRecord.id.in_(members))

        if not values or not conditions:
            return 0

        values["updated_at"] = now
        try:
            async with self._session() as session:
                result = await session.execute(
                    update(TrainingRecord)
                    .where(or_(*conditions))
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, f"Failed to update training feedback: {e}") from e

    async def find_recent_high_rated(
        self,
        min_rating: int,
        since: datetime,
        limit: int,
    ) -> list[TrainingRecord]:
        """Training records rated >= min_rating created after since, newest first."""
        try:
            async with self._session() as session:
                result = await session.execute(
                    select(TrainingRecord)
                    .where(TrainingRecord.user_rating >= min_rating)
                    .where(TrainingRecord.created_at >= since)
                    .order_by(TrainingRecord.created_at.desc())
                    .limit(limit)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, f"Failed to read training records: {e}") from e

    async def success_rate(self) -> TrainingStats:
        """Share of resolved samples (success/failure) that succeeded."""
        resolved = [ActualOutcome.SUCCESS.value, ActualOutcome.FAILURE.value]
        try:
            async with self._session() as session:
                total = await session.scalar(
                    select(func.count(TrainingRecord.id)).where(
                        TrainingRecord.actual_outcome.in_(resolved)
                    )
                )
                successful = await session.scalar(
                    select(func.count(TrainingRecord.id)).where(
                        TrainingRecord.actual_outcome == ActualOutcome.SUCCESS.value
                    )
                )
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, f"Failed to compute success rate: {e}") from e

        total = total or 0
        successful = successful or 0
        rate = round(successful / total * 100, 2) if total else 0.0
        return TrainingStats(total=total, successful=successful, success_rate=rate)

    # ============ Analysis history ============

    async def save_analysis(
        self,
        user_id: str,
        analysis: AnalysisResult,
        image_hashes: Sequence[str],
        model_variant: Optional[str] = None,
        raw_response: Optional[str] = None,
    ) -> AnalysisHistory:
        """Record an analysis delivered to a user."""
        try:
            async with self._session() as session:
                entry = AnalysisHistory(
                    user_id=user_id,
                    image_hashes=list(image_hashes),
                    image_count=len(image_hashes),
                    result=analysis.model_dump(mode="json", by_alias=True),
                    action=analysis.signal.action.value,
                    confidence=analysis.signal.confidence,
                    model_variant=model_variant,
                    web_search_performed=analysis.web_search_performed,
                    raw_response=raw_response,
                )
                session.add(entry)
                await session.flush()
            return entry
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, f"Failed to save analysis history: {e}") from e

    async def get_analysis(
        self,
        analysis_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[AnalysisHistory]:
        try:
            async with self._session() as session:
                query = select(AnalysisHistory).where(AnalysisHistory.id == analysis_id)
                if user_id is not None:
                    query = query.where(AnalysisHistory.user_id == user_id)
                result = await session.execute(query)
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, f"Failed to load analysis: {e}") from e

    async def update_analysis_feedback(
        self,
        analysis_id: str,
        feedback: FeedbackInput,
    ) -> Optional[AnalysisHistory]:
        """Apply the provided feedback fields to a history entry."""
        try:
            async with self._session() as session:
                entry = (
                    await session.execute(
                        select(AnalysisHistory).where(AnalysisHistory.id == analysis_id)
                    )
                ).scalar_one_or_none()
                if entry is None:
                    return None
                if feedback.rating is not None:
                    entry.rating = feedback.rating
                if feedback.comments is not None:
                    entry.comments = feedback.comments
                if feedback.actual_outcome is not None:
                    entry.actual_outcome = feedback.actual_outcome.value
                if feedback.price_change is not None:
                    entry.price_change = feedback.price_change
                await session.flush()
            return entry
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, f"Failed to update analysis feedback: {e}") from e

    async def find_user_high_rated(
        self,
        user_id: str,
        min_rating: int,
        limit: int,
    ) -> list[AnalysisHistory]:
        """The user's most recent history entries rated >= min_rating."""
        try:
            async with self._session() as session:
                result = await session.execute(
                    select(AnalysisHistory)
                    .where(AnalysisHistory.user_id == user_id)
                    .where(AnalysisHistory.rating >= min_rating)
                    .order_by(AnalysisHistory.created_at.desc())
                    .limit(limit)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(self.name, f"Failed to read user history: {e}") from e


# Singleton instance
_repository: Optional[TrainingRepository] = None


def get_training_repository() -> TrainingRepository:
    """Get or create the training repository singleton."""
    global _repository
    if _repository is None:
        _repository = TrainingRepository()
    return _repository
