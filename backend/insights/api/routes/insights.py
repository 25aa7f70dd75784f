"""
Insights API Routes

Endpoints used by the product's controllers and UI:
- Re-queue a submission for image analysis
- Cancel a running analysis (submission being deleted)
- Read a submission's analysis state
- Read a client's review summary
- Predict approval likelihood for a submission
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from insights.api.deps import CurrentUserId, Runtime
from insights.db.deps import DBSession
from insights.models.insights import ContentFeature, ContentFeatureStatus
from insights.repositories.content_feature import ContentFeatureRepository
from insights.repositories.submission import SubmissionRepository
from insights.schemas.insights import (
    ApprovalPrediction,
    ApprovalPredictionRequest,
    ClientSummaryResponse,
    ContentFeatureResponse,
    ReanalyzeResponse,
    ThemeInsights,
)
from insights.services.approval_scorer import ApprovalScorer
from insights.services.summary_cache import SummaryCache

logger = logging.getLogger(__name__)

router = APIRouter(tags=["insights"])

READY_LABEL = "Ready"
LIMITED_LABEL = "Ready, limited signals"
NOT_READY_LABEL = "Insights not ready yet"
NO_IMAGES_LABEL = "No images to analyze"


def readiness_label(feature: Optional[ContentFeature]) -> str:
    if feature is None:
        return NOT_READY_LABEL
    if feature.analysis_status == ContentFeatureStatus.COMPLETED:
        return READY_LABEL
    if feature.analysis_status == ContentFeatureStatus.NO_SIGNALS:
        return LIMITED_LABEL
    if feature.analysis_status == ContentFeatureStatus.NO_IMAGES:
        return NO_IMAGES_LABEL
    return NOT_READY_LABEL


async def _require_submission(db: AsyncSession, submission_id: uuid.UUID, user_id: str):
    submission = await SubmissionRepository(db).get_by_id(submission_id, user_id)
    if submission is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Submission not found"
        )
    return submission


# ========================================
# Submission Analysis
# ========================================

@router.post(
    "/submissions/{submission_id}/reanalyze",
    response_model=ReanalyzeResponse,
    status_code=status.HTTP_202_ACCEPTED
)
async def reanalyze_submission(
    submission_id: uuid.UUID,
    user_id: CurrentUserId,
    db: DBSession,
    runtime: Runtime
):
    """
    Queue a submission for another analysis pass.

    Returns immediately; the background worker picks it up.
    """
    await _require_submission(db, submission_id, user_id)

    queued = runtime.enqueue(submission_id)
    logger.info(f"Reanalysis requested for submission {submission_id} by {user_id} (queued={queued})")

    return ReanalyzeResponse(
        submission_id=submission_id,
        queued=queued,
        message="Analysis queued." if queued else "Analysis queue is full; it will be retried automatically.",
    )


@router.delete("/submissions/{submission_id}/analysis", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_submission_analysis(
    submission_id: uuid.UUID,
    user_id: CurrentUserId,
    db: DBSession,
    runtime: Runtime
):
    """Cancel the in-flight analysis of a submission (no-op if none is running)."""
    await _require_submission(db, submission_id, user_id)
    runtime.cancel_analysis(submission_id)


@router.get("/submissions/{submission_id}/features", response_model=ContentFeatureResponse)
async def get_submission_features(
    submission_id: uuid.UUID,
    user_id: CurrentUserId,
    db: DBSession
):
    """Analysis state of a submission with a display readiness label."""
    await _require_submission(db, submission_id, user_id)
    feature = await ContentFeatureRepository(db).get_by_submission_id(submission_id)

    if feature is None:
        return ContentFeatureResponse(
            submission_id=submission_id,
            analysis_status="not_started",
            readiness=readiness_label(None),
        )

    themes = ThemeInsights.from_json(feature.theme_tags_json)
    return ContentFeatureResponse(
        submission_id=submission_id,
        analysis_status=feature.analysis_status.value,
        readiness=readiness_label(feature),
        ocr_text=feature.ocr_text,
        themes=themes,
        tags=themes.flatten_tags(),
        failure_reason=feature.failure_reason,
        last_analyzed_at=feature.last_analyzed_at,
        extracted_at=feature.extracted_at,
    )


# ========================================
# Client Insights
# ========================================

@router.get("/insights/clients/{client_id}/summary", response_model=ClientSummaryResponse)
async def get_client_summary(
    client_id: uuid.UUID,
    user_id: CurrentUserId,
    db: DBSession,
    runtime: Runtime
):
    """Cached review summary for a client, refreshed when review counts change."""
    summary = await SummaryCache(db, runtime.text_generator).get_or_refresh(client_id, user_id)
    if summary is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client not found"
        )
    return summary


@router.post("/insights/predict", response_model=ApprovalPrediction)
async def predict_approval(
    request: ApprovalPredictionRequest,
    user_id: CurrentUserId,
    db: DBSession,
    runtime: Runtime
):
    """Approval likelihood for a submission; non-ready states are reported in ``status``."""
    scorer = ApprovalScorer(db, runtime.text_generator)
    return await scorer.predict(request.client_id, request.submission_id, user_id)
