"""
Review and client summary repositories.

Approved / rejected counts are computed with GROUP BY queries rather than by
loading rows; they run on every summary and prediction request.
"""

import logging
import uuid
from typing import List, NamedTuple, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from insights.models.insights import ClientSummary
from insights.models.submission import Review, ReviewStatus, Submission

logger = logging.getLogger(__name__)


class ReviewCounts(NamedTuple):
    approved: int
    rejected: int

    @property
    def total(self) -> int:
        return self.approved + self.rejected

    def approval_rate(self, default: float = 0.5) -> float:
        """approved / total, or ``default`` when there is no history."""
        if self.total == 0:
            return default
        return self.approved / self.total


class ReviewRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_client(self, client_id: uuid.UUID) -> List[Review]:
        """All reviews of a client's submissions, oldest first."""
        query = (
            select(Review)
            .join(Submission, Submission.id == Review.submission_id)
            .where(Submission.client_id == client_id)
            .order_by(Review.reviewed_at)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_client_counts(self, client_id: uuid.UUID) -> ReviewCounts:
        query = (
            select(Review.status, func.count(Review.id))
            .join(Submission, Submission.id == Review.submission_id)
            .where(Submission.client_id == client_id)
            .group_by(Review.status)
        )
        return await self._counts(query)

    async def get_global_counts(self) -> ReviewCounts:
        query = select(Review.status, func.count(Review.id)).group_by(Review.status)
        return await self._counts(query)

    async def approved_submission_ids(
        self,
        client_id: uuid.UUID,
        exclude: Optional[uuid.UUID] = None
    ) -> List[uuid.UUID]:
        query = (
            select(Review.submission_id)
            .join(Submission, Submission.id == Review.submission_id)
            .where(
                Submission.client_id == client_id,
                Review.status == ReviewStatus.APPROVED
            )
        )
        if exclude is not None:
            query = query.where(Review.submission_id != exclude)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _counts(self, query) -> ReviewCounts:
        result = await self.db.execute(query)
        by_status = {status: count for status, count in result.all()}
        return ReviewCounts(
            approved=by_status.get(ReviewStatus.APPROVED, 0),
            rejected=by_status.get(ReviewStatus.REJECTED, 0),
        )


class ClientSummaryRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_client_id(self, client_id: uuid.UUID) -> Optional[ClientSummary]:
        query = select(ClientSummary).where(ClientSummary.client_id == client_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        client_id: uuid.UUID,
        payload: str,
        approved_count: int,
        rejected_count: int
    ) -> ClientSummary:
        """Create or replace the cached summary of a client. Flushes; the caller commits."""
        summary = await self.get_by_client_id(client_id)
        if summary is None:
            summary = ClientSummary(client_id=client_id, payload=payload)
            self.db.add(summary)

        summary.payload = payload
        summary.approved_count = approved_count
        summary.rejected_count = rejected_count

        await self.db.flush()
        return summary
