"""
Background analysis worker.

Consumes submission IDs from the AnalysisQueue and runs one analysis pass
per ID, each in its own database session.

Failure isolation:
------------------
- Submission gone: warning, next item
- Any exception from the pass: logged with the submission ID, next item
- ``cancel(submission_id)``: ends that item only (e.g. submission deleted
  while being analyzed); not recorded as a failure
- Cancelling the worker task itself: the loop stops
"""

import asyncio
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from insights.core.logging import get_logger
from insights.models.insights import ContentFeature
from insights.repositories.submission import SubmissionRepository
from insights.services.analysis_queue import AnalysisQueue
from insights.services.feature_aggregator import FeatureAggregator
from insights.services.media_analyzer import MediaAnalyzer

logger = get_logger(__name__)


class AnalysisWorker:
    """
    Long-running queue consumer.

    Usage:
    ------
    worker = AnalysisWorker(queue, analyzer, AsyncSessionLocal)
    task = asyncio.create_task(worker.run(stop_event))
    """

    def __init__(
        self,
        queue: AnalysisQueue,
        analyzer: MediaAnalyzer,
        session_factory: async_sessionmaker[AsyncSession]
    ):
        self.queue = queue
        self.analyzer = analyzer
        self.session_factory = session_factory
        self._in_flight: dict[uuid.UUID, asyncio.Task] = {}
        self.processed = 0
        self.failed = 0

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        logger.info("analysis_worker_started")
        try:
            async for submission_id in self.queue.stream(stop_event):
                await self._run_item(submission_id)
        finally:
            logger.info(
                "analysis_worker_stopped",
                processed=self.processed,
                failed=self.failed,
                queued=self.queue.qsize(),
            )

    def cancel(self, submission_id: uuid.UUID) -> bool:
        """Cancel the in-flight analysis of a submission, if any."""
        task = self._in_flight.get(submission_id)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def _run_item(self, submission_id: uuid.UUID) -> None:
        task = asyncio.create_task(self.process(submission_id))
        self._in_flight[submission_id] = task
        try:
            await task
            self.processed += 1
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                # The worker itself is shutting down
                raise
            logger.info("analysis_cancelled", submission_id=str(submission_id))
        except Exception as e:
            self.failed += 1
            logger.error(
                "analysis_failed",
                submission_id=str(submission_id),
                error=str(e),
                error_type=type(e).__name__,
            )
        finally:
            self._in_flight.pop(submission_id, None)

    async def process(self, submission_id: uuid.UUID) -> Optional[ContentFeature]:
        """
        Run one analysis pass.

        Returns:
            The persisted ContentFeature, or None if the submission is gone
        """
        async with self.session_factory() as db:
            try:
                submission = await SubmissionRepository(db).get_by_id_internal(submission_id)
                if submission is None:
                    logger.warning("analysis_submission_not_found", submission_id=str(submission_id))
                    return None

                feature = await FeatureAggregator(db, self.analyzer).analyze(submission)
                logger.info(
                    "analysis_completed",
                    submission_id=str(submission_id),
                    status=feature.analysis_status.value,
                )
                return feature
            except Exception:
                await db.rollback()
                raise
