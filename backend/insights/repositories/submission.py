"""
Submission and client repositories.

Read-only from the pipeline's point of view: the CRUD layer owns writes to
these tables. Owner scoping (``user_id``) mirrors what the product's
controllers enforce; internal callers (worker, backfill) skip it.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from insights.models.insights import ContentFeature, ContentFeatureStatus
from insights.models.submission import Client, MediaFile, MediaFileType, Submission

logger = logging.getLogger(__name__)


class ClientRepository:
    """Client lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(
        self,
        client_id: uuid.UUID,
        user_id: Optional[str] = None
    ) -> Optional[Client]:
        """
        Get a client by ID.

        Args:
            client_id: Client ID
            user_id: Optional owner ID for authorization check

        Returns:
            Client or None if not found (or not owned by user_id)
        """
        query = select(Client).where(Client.id == client_id)

        if user_id is not None:
            query = query.where(Client.owner_id == user_id)

        result = await self.db.execute(query)
        return result.scalar_one_or_none()


class SubmissionRepository:
    """Submission lookups used by the analysis pipeline and the insights API."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(
        self,
        submission_id: uuid.UUID,
        user_id: str
    ) -> Optional[Submission]:
        """Get a submission created by ``user_id`` (media files and review loaded)."""
        query = select(Submission).where(
            Submission.id == submission_id,
            Submission.created_by_id == user_id
        )
        result = await self.db.execute(query)
        return result.unique().scalar_one_or_none()

    async def get_by_id_internal(self, submission_id: uuid.UUID) -> Optional[Submission]:
        """Get a submission without owner scoping. Background callers only."""
        query = select(Submission).where(Submission.id == submission_id)
        result = await self.db.execute(query)
        return result.unique().scalar_one_or_none()

    async def ids_needing_backfill(self, stale_before: datetime) -> List[uuid.UUID]:
        """
        IDs of submissions whose analysis is missing or should be retried.

        A submission qualifies when it has at least one image file and
        either:
        - no content feature row,
        - a FAILED feature, or
        - a PENDING feature whose last attempt is unknown or older than
          ``stale_before`` (worker crashed or restarted mid-analysis).
        """
        has_image = (
            select(MediaFile.id)
            .where(
                MediaFile.submission_id == Submission.id,
                MediaFile.file_type == MediaFileType.IMAGE
            )
            .exists()
        )

        query = (
            select(Submission.id)
            .outerjoin(ContentFeature, ContentFeature.submission_id == Submission.id)
            .where(has_image)
            .where(
                or_(
                    ContentFeature.id.is_(None),
                    ContentFeature.analysis_status == ContentFeatureStatus.FAILED,
                    (ContentFeature.analysis_status == ContentFeatureStatus.PENDING)
                    & or_(
                        ContentFeature.last_analyzed_at.is_(None),
                        ContentFeature.last_analyzed_at < stale_before
                    ),
                )
            )
            .distinct()
        )

        result = await self.db.execute(query)
        return list(result.scalars().all())

