"""
Feature Aggregator

Combines the per-file analysis results of a submission into its single
ContentFeature row and decides the analysis status.

State evaluation (first match wins):
------------------------------------
1. no image files                          -> NO_IMAGES
2. any OCR text or any theme data          -> COMPLETED
3. nothing extracted, >=1 call succeeded   -> NO_SIGNALS
4. nothing extracted, every call failed    -> FAILED

NO_SIGNALS means the providers worked and the image simply had nothing to
extract; FAILED means they did not work and a retry is worthwhile.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from insights.db.base import utcnow
from insights.models.insights import ContentFeature, ContentFeatureStatus
from insights.models.submission import Submission
from insights.repositories.content_feature import ContentFeatureRepository
from insights.schemas.insights import ThemeInsights
from insights.services.media_analyzer import MediaAnalysisResult, MediaAnalyzer

logger = logging.getLogger(__name__)

NO_IMAGES_REASON = "Submission has no image files."
NO_SIGNALS_REASON = "Analyzed images but no text or visual signals detected."
FAILED_PREFIX = "Image analysis failed: "
FAILED_GENERIC_REASON = "Image analysis failed for every image."
MAX_REPORTED_ERRORS = 4


@dataclass
class AnalysisOutcome:
    """What a finished analysis pass writes to the feature row."""

    status: ContentFeatureStatus
    ocr_text: Optional[str] = None
    theme_tags_json: Optional[str] = None
    failure_reason: Optional[str] = None
    signals_extracted: bool = False


def _failure_reason(results: Sequence[MediaAnalysisResult]) -> str:
    distinct: List[str] = []
    for result in results:
        for error in result.errors:
            if error not in distinct:
                distinct.append(error)
    if not distinct:
        return FAILED_GENERIC_REASON
    return FAILED_PREFIX + ", ".join(distinct[:MAX_REPORTED_ERRORS])


def resolve_outcome(results: Sequence[MediaAnalysisResult], has_images: bool) -> AnalysisOutcome:
    """Apply the status rules to a set of per-file results."""
    if not has_images:
        return AnalysisOutcome(status=ContentFeatureStatus.NO_IMAGES, failure_reason=NO_IMAGES_REASON)

    ocr_parts = [r.ocr_text.strip() for r in results if r.ocr_text and r.ocr_text.strip()]
    ocr_text = "\n".join(ocr_parts) or None

    # Keyword-only answers already arrive wrapped as ThemeInsights.keywords
    combined = ThemeInsights.combine(r.themes for r in results)
    theme_tags_json = combined.to_json() if combined.has_any_data else None

    if ocr_text or combined.has_any_data:
        return AnalysisOutcome(
            status=ContentFeatureStatus.COMPLETED,
            ocr_text=ocr_text,
            theme_tags_json=theme_tags_json,
            signals_extracted=True,
        )

    if any(r.any_succeeded for r in results):
        return AnalysisOutcome(
            status=ContentFeatureStatus.NO_SIGNALS,
            theme_tags_json=theme_tags_json,
            failure_reason=NO_SIGNALS_REASON,
            signals_extracted=True,
        )

    return AnalysisOutcome(
        status=ContentFeatureStatus.FAILED,
        theme_tags_json=theme_tags_json,
        failure_reason=_failure_reason(results),
    )


class FeatureAggregator:
    """
    Runs one analysis pass for a submission and persists the result.

    Usage:
    ------
    aggregator = FeatureAggregator(db, analyzer)
    feature = await aggregator.analyze(submission)

    Commits twice: once when the pass starts (row marked PENDING so a crash
    mid-analysis is visible to backfill) and once with the final outcome.
    Database errors propagate to the caller.
    """

    def __init__(self, db: AsyncSession, analyzer: MediaAnalyzer):
        self.db = db
        self.analyzer = analyzer
        self.features = ContentFeatureRepository(db)

    async def analyze(self, submission: Submission) -> ContentFeature:
        submission_id = submission.id
        image_files = submission.image_files

        if not image_files:
            outcome = resolve_outcome([], has_images=False)
            return await self._save(submission_id, outcome, utcnow())

        await self.features.mark_pending(submission_id, utcnow())
        await self.db.commit()

        logger.info(f"Analyzing {len(image_files)} image(s) for submission {submission_id}")
        results = await self.analyzer.analyze_files(image_files)

        outcome = resolve_outcome(results, has_images=True)
        return await self._save(submission_id, outcome, utcnow())

    async def _save(
        self,
        submission_id,
        outcome: AnalysisOutcome,
        finished_at: datetime
    ) -> ContentFeature:
        feature = await self.features.upsert(
            submission_id,
            analysis_status=outcome.status,
            ocr_text=outcome.ocr_text,
            theme_tags_json=outcome.theme_tags_json,
            failure_reason=outcome.failure_reason,
            last_analyzed_at=finished_at,
            extracted_at=finished_at if outcome.signals_extracted else None,
        )
        await self.db.commit()

        if outcome.status == ContentFeatureStatus.FAILED:
            logger.warning(f"Analysis failed for submission {submission_id}: {outcome.failure_reason}")
        else:
            logger.info(f"Analysis finished for submission {submission_id} with status={outcome.status.value}")

        return feature
