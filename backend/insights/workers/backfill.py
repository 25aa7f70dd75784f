"""
Startup backfill.

The analysis queue lives in memory, so anything queued or mid-analysis when
the process stopped is lost. Shortly after startup this scanner finds those
submissions (plus failed ones) and queues them again. It runs once per
process.
"""

import asyncio
import uuid
from datetime import timedelta
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from insights.core.config import settings
from insights.core.logging import get_logger
from insights.db.base import utcnow
from insights.repositories.submission import SubmissionRepository
from insights.services.analysis_queue import AnalysisQueue

logger = get_logger(__name__)


class BackfillScanner:
    """
    One-shot re-enqueue of missing, failed and stale analyses.

    Usage:
    ------
    scanner = BackfillScanner(queue, AsyncSessionLocal)
    task = asyncio.create_task(scanner.run())
    """

    def __init__(
        self,
        queue: AnalysisQueue,
        session_factory: async_sessionmaker[AsyncSession],
        startup_delay_seconds: float | None = None,
        stale_after_minutes: int | None = None
    ):
        self.queue = queue
        self.session_factory = session_factory
        self.startup_delay_seconds = (
            settings.BACKFILL_STARTUP_DELAY_SECONDS if startup_delay_seconds is None else startup_delay_seconds
        )
        self.stale_after_minutes = (
            settings.BACKFILL_STALE_AFTER_MINUTES if stale_after_minutes is None else stale_after_minutes
        )

    async def run(self) -> int:
        """Wait for the startup delay, scan once, and return how many IDs were queued."""
        try:
            await asyncio.sleep(self.startup_delay_seconds)
        except asyncio.CancelledError:
            logger.debug("backfill_cancelled_before_scan")
            raise

        return await self.scan_once()

    async def scan_once(self) -> int:
        cutoff = utcnow() - timedelta(minutes=self.stale_after_minutes)

        try:
            submission_ids = await self._find_candidates(cutoff)
        except Exception as e:
            logger.error(
                "backfill_scan_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0

        queued = sum(1 for submission_id in submission_ids if self.queue.enqueue(submission_id))
        logger.info("backfill_completed", candidates=len(submission_ids), queued=queued)
        return queued

    async def _find_candidates(self, cutoff) -> List[uuid.UUID]:
        async with self.session_factory() as db:
            return await SubmissionRepository(db).ids_needing_backfill(cutoff)
