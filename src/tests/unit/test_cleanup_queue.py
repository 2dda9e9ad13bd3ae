"""Unit tests for CleanupQueue."""

import asyncio
import logging

import pytest

from infrakit_instance.cleanup import CleanupQueue
from infrakit_instance.errors import CleanupQueueClosedError


class TestCleanupQueue:
    """Tests for the bounded single-worker cleanup queue."""

    async def test_processes_items_in_order(self) -> None:
        processed: list[str] = []

        async def handler(item: str) -> None:
            processed.append(item)

        queue = CleanupQueue(handler, maxsize=8)
        queue.start()
        for item in ("a", "b", "c", "d"):
            await queue.put(item)
        await queue.close()

        assert processed == ["a", "b", "c", "d"]

    async def test_put_blocks_when_full(self) -> None:
        """Enqueue past capacity waits until the worker drains an item."""
        processed: list[str] = []
        started = asyncio.Event()
        release = asyncio.Event()

        async def handler(item: str) -> None:
            processed.append(item)
            started.set()
            await release.wait()

        queue = CleanupQueue(handler, maxsize=1)
        queue.start()

        await queue.put("a")
        await asyncio.wait_for(started.wait(), timeout=1)  # worker holds "a"
        await queue.put("b")  # fills the queue

        blocked = asyncio.create_task(queue.put("c"))
        for _ in range(10):
            await asyncio.sleep(0)
        assert not blocked.done()

        release.set()
        await asyncio.wait_for(blocked, timeout=1)
        await queue.close()

        assert processed == ["a", "b", "c"]

    async def test_close_drains_pending_items(self) -> None:
        processed: list[str] = []

        async def handler(item: str) -> None:
            await asyncio.sleep(0)
            processed.append(item)

        queue = CleanupQueue(handler, maxsize=4)
        queue.start()
        await queue.put("a")
        await queue.put("b")
        await queue.put("c")

        await queue.close()

        assert processed == ["a", "b", "c"]
        assert queue.qsize() == 0

    async def test_put_after_close_raises(self) -> None:
        async def handler(item: str) -> None:
            pass

        queue = CleanupQueue(handler)
        queue.start()
        await queue.close()

        assert queue.closed is True
        with pytest.raises(CleanupQueueClosedError):
            await queue.put("late")

    async def test_handler_failure_is_logged_and_skipped(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        processed: list[str] = []

        async def handler(item: str) -> None:
            if item == "bad":
                raise OSError("disk gone")
            processed.append(item)

        queue = CleanupQueue(handler)
        queue.start()
        with caplog.at_level(logging.WARNING, logger="infrakit_instance.cleanup"):
            await queue.put("bad")
            await queue.put("good")
            await queue.close()

        assert processed == ["good"]
        assert "Cleanup failed" in caplog.text

    async def test_start_twice_is_noop(self) -> None:
        async def handler(item: str) -> None:
            pass

        queue = CleanupQueue(handler)
        queue.start()
        queue.start()
        await queue.close()

    async def test_close_is_idempotent(self) -> None:
        async def handler(item: str) -> None:
            pass

        queue = CleanupQueue(handler)
        queue.start()
        await queue.close()
        await queue.close()

    async def test_close_without_start(self) -> None:
        async def handler(item: str) -> None:
            pass

        queue = CleanupQueue(handler)
        await queue.close()

        with pytest.raises(CleanupQueueClosedError):
            queue.start()

    def test_maxsize_must_be_positive(self) -> None:
        async def handler(item: str) -> None:
            pass

        with pytest.raises(ValueError):
            CleanupQueue(handler, maxsize=0)

        assert CleanupQueue(handler, maxsize=3).maxsize == 3
