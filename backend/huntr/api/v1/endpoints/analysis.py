"""
Chart Analysis API Endpoints

Upload chart screenshots for AI trading signals, rate them, and chat about
them.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field

from huntr.schemas.analysis import ImageInput
from huntr.schemas.training import FeedbackInput, Provenance
from huntr.services.analysis import AnalysisPipeline, get_analysis_pipeline, hash_ip
from huntr.services.base import (
    ProviderError,
    ProviderExhaustedError,
    ServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatRequest(BaseModel):
    """Request body for a follow-up question."""

    message: str = Field(default="", description="Question about the analysis")


def _provenance(request: Request, user_id: Optional[str], session_id: Optional[str]) -> Provenance:
    client_host = request.client.host if request.client else None
    return Provenance(
        user_id=user_id or "anonymous",
        session_id=session_id,
        ip_hash=hash_ip(client_host),
        user_agent=request.headers.get("user-agent"),
    )


def _to_http_error(e: ServiceError) -> HTTPException:
    """Map terminal pipeline errors to HTTP responses."""
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=e.message)
    if isinstance(e, ProviderExhaustedError):
        return HTTPException(
            status_code=503,
            detail=e.message,
            headers={"Retry-After": str(e.retry_after)},
        )
    if isinstance(e, ProviderError):
        return HTTPException(status_code=502, detail="Analysis failed. Please try again.")
    return HTTPException(status_code=500, detail="Analysis failed. Please try again.")


async def _read_upload(upload: UploadFile) -> ImageInput:
    data = await upload.read()
    return ImageInput(
        data=data,
        mime_type=upload.content_type or "application/octet-stream",
        filename=upload.filename,
    )


@router.post("/chart")
async def analyze_chart(
    request: Request,
    chart: UploadFile = File(..., description="Chart screenshot (JPEG, PNG or WebP)"),
    model: Optional[str] = None,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
    session_id: Optional[str] = Header(None, alias="X-Session-Id"),
    pipeline: AnalysisPipeline = Depends(get_analysis_pipeline),
):
    """
    Analyze a single chart image.

    Returns a trading signal, chart analysis and reasoning.
    """
    image = await _read_upload(chart)

    try:
        outcome = await pipeline.analyze_single(
            image.data,
            image.mime_type,
            user_id=user_id,
            preferred_variant=model,
            provenance=_provenance(request, user_id, session_id),
        )
    except ServiceError as e:
        logger.error(f"Chart analysis error: {e}")
        raise _to_http_error(e)

    return outcome.model_dump(mode="json", by_alias=True)


@router.post("/charts/multiple")
async def analyze_multiple_charts(
    request: Request,
    charts: List[UploadFile] = File(..., description="1-5 charts of the same instrument"),
    model: Optional[str] = None,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
    session_id: Optional[str] = Header(None, alias="X-Session-Id"),
    pipeline: AnalysisPipeline = Depends(get_analysis_pipeline),
):
    """
    Multi-timeframe analysis of up to 5 charts.
    """
    images = [await _read_upload(upload) for upload in charts]

    try:
        outcome = await pipeline.analyze_batch(
            images,
            user_id=user_id,
            preferred_variant=model,
            provenance=_provenance(request, user_id, session_id),
        )
    except ServiceError as e:
        logger.error(f"Multi-chart analysis error: {e}")
        raise _to_http_error(e)

    return outcome.model_dump(mode="json", by_alias=True)


@router.post("/feedback/{identifier}")
async def submit_feedback(
    identifier: str,
    feedback: FeedbackInput,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
    pipeline: AnalysisPipeline = Depends(get_analysis_pipeline),
):
    """
    Rate an analysis (by analysis id) or a training sample (by image fingerprint).
    """
    try:
        outcome = await pipeline.refresh_feedback(identifier, feedback, user_id=user_id)
    except ValidationError as e:
        raise _to_http_error(e)

    return {
        "message": "Feedback submitted successfully",
        **outcome.model_dump(mode="json", by_alias=True),
    }


@router.post("/chat/{analysis_id}")
async def chat_about_analysis(
    analysis_id: str,
    body: ChatRequest,
    model: Optional[str] = None,
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
    pipeline: AnalysisPipeline = Depends(get_analysis_pipeline),
):
    """
    Ask a follow-up question about a stored analysis.
    """
    if not body.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    context = await pipeline.get_analysis_context(analysis_id, user_id)
    if context is None:
        raise HTTPException(status_code=404, detail="Analysis not found")

    try:
        reply = await pipeline.chat(context, body.message, user_id=user_id, preferred_variant=model)
    except ServiceError as e:
        logger.error(f"Chat error: {e}")
        raise _to_http_error(e)

    return {"message": reply, "analysisId": analysis_id}


@router.get("/training/stats")
async def get_training_stats(
    pipeline: AnalysisPipeline = Depends(get_analysis_pipeline),
):
    """
    Outcome statistics for the training corpus.
    """
    stats = await pipeline.training_stats()
    return stats.model_dump()
