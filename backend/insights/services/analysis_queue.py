"""
In-process analysis queue

A FIFO of submission IDs waiting for image analysis, shared by the request
path (producer) and the analysis worker (consumer).

Delivery is at-least-once and duplicates are fine: analysis is an
idempotent upsert. Nothing survives a restart; the backfill scanner
re-enqueues whatever was lost.
"""

import asyncio
import logging
import uuid
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)


class AnalysisQueue:
    """
    Submission ID queue backed by ``asyncio.Queue``.

    Usage:
    ------
    queue = AnalysisQueue()
    queue.enqueue(submission.id)

    async for submission_id in queue.stream(stop_event):
        ...

    ``maxsize=0`` (default) means unbounded. With a bound, ``enqueue`` drops
    the ID and logs instead of blocking the caller.
    """

    def __init__(self, maxsize: int = 0):
        self.maxsize = maxsize
        self._queue: asyncio.Queue[uuid.UUID] = asyncio.Queue(maxsize=maxsize)

    def enqueue(self, submission_id: uuid.UUID) -> bool:
        """
        Add a submission ID without waiting.

        Returns:
            True if queued, False if dropped because the queue is full
        """
        try:
            self._queue.put_nowait(submission_id)
        except asyncio.QueueFull:
            logger.warning(
                f"Analysis queue full (maxsize={self.maxsize}); dropped submission {submission_id}, backfill will retry"
            )
            return False

        logger.debug(f"Enqueued submission {submission_id} for analysis (depth={self._queue.qsize()})")
        return True

    async def dequeue(self) -> uuid.UUID:
        """Wait for the next ID."""
        return await self._queue.get()

    async def stream(self, stop_event: Optional[asyncio.Event] = None) -> AsyncIterator[uuid.UUID]:
        """
        Yield IDs as they arrive until ``stop_event`` is set.

        Waits without polling while the queue is empty. Cancelling the
        consuming task cancels the wait.
        """
        if stop_event is None:
            while True:
                yield await self._queue.get()

        while not stop_event.is_set():
            get_task = asyncio.ensure_future(self._queue.get())
            stop_task = asyncio.ensure_future(stop_event.wait())
            try:
                done, _ = await asyncio.wait(
                    {get_task, stop_task},
                    return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                stop_task.cancel()
                if not get_task.done():
                    get_task.cancel()

            if get_task in done and not get_task.cancelled():
                yield get_task.result()

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()
