"""
Content feature repository.

One row per submission. ``upsert`` is the only mutation path; it updates the
existing row in place so the feature id stays stable across re-analysis.
"""

import logging
import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from insights.db.base import utcnow
from insights.models.insights import ContentFeature, ContentFeatureStatus

logger = logging.getLogger(__name__)


class ContentFeatureRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_submission_id(self, submission_id: uuid.UUID) -> Optional[ContentFeature]:
        query = select(ContentFeature).where(ContentFeature.submission_id == submission_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_submission_ids(
        self,
        submission_ids: Iterable[uuid.UUID]
    ) -> List[ContentFeature]:
        ids = list(submission_ids)
        if not ids:
            return []
        query = select(ContentFeature).where(ContentFeature.submission_id.in_(ids))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def upsert(
        self,
        submission_id: uuid.UUID,
        *,
        analysis_status: ContentFeatureStatus,
        ocr_text: Optional[str] = None,
        theme_tags_json: Optional[str] = None,
        failure_reason: Optional[str] = None,
        last_analyzed_at: Optional[datetime] = None,
        extracted_at: Optional[datetime] = None,
    ) -> ContentFeature:
        """
        Create or overwrite the feature row of a submission.

        Every column is written on each call: a re-analysis replaces the
        previous outcome entirely. Flushes; the caller commits.
        """
        feature = await self.get_by_submission_id(submission_id)
        if feature is None:
            feature = ContentFeature(submission_id=submission_id)
            self.db.add(feature)

        feature.analysis_status = analysis_status
        feature.ocr_text = ocr_text
        feature.theme_tags_json = theme_tags_json
        feature.failure_reason = failure_reason
        feature.last_analyzed_at = last_analyzed_at or utcnow()
        feature.extracted_at = extracted_at

        await self.db.flush()
        return feature

    async def mark_pending(
        self,
        submission_id: uuid.UUID,
        analyzed_at: Optional[datetime] = None
    ) -> ContentFeature:
        """
        Record that an analysis attempt has started.

        Previous OCR text and tags are kept so readers still see the last
        known signals while the new pass runs.
        """
        feature = await self.get_by_submission_id(submission_id)
        if feature is None:
            feature = ContentFeature(submission_id=submission_id)
            self.db.add(feature)

        feature.analysis_status = ContentFeatureStatus.PENDING
        feature.failure_reason = None
        feature.last_analyzed_at = analyzed_at or utcnow()

        await self.db.flush()
        return feature
