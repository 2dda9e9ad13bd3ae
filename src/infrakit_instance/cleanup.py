"""Deferred cleanup queue.

A single bounded asyncio.Queue drained by exactly one worker task. Destroy
callers enqueue and return; the worker performs slow physical cleanup in
enqueue order.

Lifecycle:
    queue = CleanupQueue(handler, maxsize=64)
    queue.start()          # spawn the worker (needs a running loop)
    await queue.put(item)  # blocks while the queue is full
    await queue.close()    # refuse new items, drain, stop the worker
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from infrakit_instance.errors import CleanupQueueClosedError
from infrakit_instance.logging_schema import LogEvent
from infrakit_instance.metrics import PLUGIN_CLEANUP_ITEMS, PLUGIN_CLEANUP_QUEUE_SIZE

logger = logging.getLogger(__name__)

_STOP = object()


class CleanupQueue:
    """Bounded queue with one consuming worker."""

    def __init__(
        self,
        handler: Callable[[str], Awaitable[None]],
        maxsize: int = 64,
    ) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._handler = handler
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Spawn the worker task. Calling twice is a no-op."""
        if self._worker is not None:
            return
        if self._closed:
            raise CleanupQueueClosedError()
        self._worker = asyncio.create_task(self._run(), name="cleanup-worker")

    async def put(self, item: str) -> None:
        """Enqueue item, waiting for space when the queue is full.

        Raises:
            CleanupQueueClosedError: If close() has been called.
        """
        if self._closed:
            raise CleanupQueueClosedError()
        await self._queue.put(item)
        PLUGIN_CLEANUP_QUEUE_SIZE.set(self._queue.qsize())
        logger.debug(
            "Cleanup queued",
            extra={"event": LogEvent.CLEANUP_QUEUED, "item": item, "queued": self._queue.qsize()},
        )

    async def close(self) -> None:
        """Stop accepting items and wait until the worker has drained the queue."""
        if self._closed:
            return
        self._closed = True

        if self._worker is None:
            dropped = self._queue.qsize()
            if dropped:
                logger.warning(
                    "Cleanup queue closed before worker started",
                    extra={"event": LogEvent.CLEANUP_DRAINED, "dropped": dropped},
                )
            return

        await self._queue.put(_STOP)
        await self._worker
        self._worker = None
        logger.info("Cleanup queue drained", extra={"event": LogEvent.CLEANUP_DRAINED})

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            PLUGIN_CLEANUP_QUEUE_SIZE.set(self._queue.qsize())
            try:
                if item is _STOP:
                    return
                await self._process(str(item))
            finally:
                self._queue.task_done()

    async def _process(self, item: str) -> None:
        try:
            await self._handler(item)
        except Exception as e:
            # Destroy callers already got success; failures are only logged.
            PLUGIN_CLEANUP_ITEMS.labels(result="failed").inc()
            logger.warning(
                "Cleanup failed",
                extra={"event": LogEvent.CLEANUP_FAILED, "item": item, "error": str(e)},
            )
            return
        PLUGIN_CLEANUP_ITEMS.labels(result="completed").inc()
        logger.debug(
            "Cleanup completed",
            extra={"event": LogEvent.CLEANUP_COMPLETED, "item": item},
        )
