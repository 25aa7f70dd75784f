"""
Analysis runtime.

Owns the background side of the process: providers, the analysis queue, the
worker task and the one-shot backfill task. Created and started from the
FastAPI lifespan, stopped on shutdown.

Lifecycle:
----------
    runtime = AnalysisRuntime()
    await runtime.start()      # worker + backfill tasks running
    runtime.enqueue(sub_id)    # request path
    await runtime.stop()       # stop event set, tasks cancelled and joined
"""

import asyncio
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from insights.core.config import Settings, settings as default_settings
from insights.core.logging import get_logger
from insights.services.analysis_queue import AnalysisQueue
from insights.services.file_storage import LocalFileStorage
from insights.services.media_analyzer import MediaAnalyzer
from insights.services.providers import Providers, build_providers
from insights.services.providers.base import TextGenerator
from insights.workers.analysis_worker import AnalysisWorker
from insights.workers.backfill import BackfillScanner

logger = get_logger(__name__)


class AnalysisRuntime:
    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        providers: Optional[Providers] = None,
        config: Optional[Settings] = None,
        storage: Optional[LocalFileStorage] = None
    ):
        self.config = config or default_settings

        if session_factory is None:
            from insights.db.session import AsyncSessionLocal
            session_factory = AsyncSessionLocal

        self.session_factory = session_factory
        self.providers = providers or build_providers(self.config)
        self.queue = AnalysisQueue(maxsize=self.config.ANALYSIS_QUEUE_MAXSIZE)
        self.analyzer = MediaAnalyzer(
            ocr=self.providers.ocr,
            themes=self.providers.themes,
            storage=storage or LocalFileStorage(self.config.UPLOAD_ROOT),
        )
        self.worker = AnalysisWorker(self.queue, self.analyzer, self.session_factory)
        self.backfill = BackfillScanner(
            self.queue,
            self.session_factory,
            startup_delay_seconds=self.config.BACKFILL_STARTUP_DELAY_SECONDS,
            stale_after_minutes=self.config.BACKFILL_STALE_AFTER_MINUTES,
        )

        self._stop_event = asyncio.Event()
        self._worker_task: Optional[asyncio.Task] = None
        self._backfill_task: Optional[asyncio.Task] = None

    @property
    def text_generator(self) -> TextGenerator:
        return self.providers.text

    @property
    def is_running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    async def start(self) -> None:
        self._stop_event.clear()

        if self.config.ANALYSIS_WORKER_ENABLED and self._worker_task is None:
            self._worker_task = asyncio.create_task(
                self.worker.run(self._stop_event),
                name="analysis-worker",
            )

        if self.config.BACKFILL_ENABLED and self._backfill_task is None:
            self._backfill_task = asyncio.create_task(
                self.backfill.run(),
                name="analysis-backfill",
            )

        logger.info(
            "analysis_runtime_started",
            worker=self._worker_task is not None,
            backfill=self._backfill_task is not None,
            queue_maxsize=self.config.ANALYSIS_QUEUE_MAXSIZE,
        )

    async def stop(self) -> None:
        self._stop_event.set()

        tasks = [t for t in (self._worker_task, self._backfill_task) if t is not None]
        for task in tasks:
            if not task.done():
                task.cancel()

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for task, result in zip(tasks, results):
            if isinstance(result, Exception):
                logger.error(
                    "analysis_task_crashed",
                    task=task.get_name(),
                    error=str(result),
                    error_type=type(result).__name__,
                )

        self._worker_task = None
        self._backfill_task = None
        logger.info("analysis_runtime_stopped", queued=self.queue.qsize())

    def enqueue(self, submission_id: uuid.UUID) -> bool:
        return self.queue.enqueue(submission_id)

    def cancel_analysis(self, submission_id: uuid.UUID) -> bool:
        cancelled = self.worker.cancel(submission_id)
        if cancelled:
            logger.info("analysis_cancel_requested", submission_id=str(submission_id))
        return cancelled
