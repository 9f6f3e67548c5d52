"""
Paced batch execution of independent remote operations.

Remote hosts meter writes much more tightly than reads, so bulk operations
(blob uploads, blob downloads) are issued in fixed-size batches:

    batch 0: op0, op1 (+intra), op2 (+intra), ...   run concurrently
    pause inter_delay
    batch 1: ...

Results come back in input order regardless of completion order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Generic, TypeVar

from treesync.core.config.models import BatchSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Sleep = Callable[[float], Awaitable[Any]]


class BatchScheduler(Generic[T, R]):
    """
    Runs an operation over items in paced, concurrent batches.

    Operations in one batch must be independent of each other. Each
    operation is expected to go through the client's rate-limit executor.

    Example:
        >>> scheduler = BatchScheduler(batch_size=5, intra_delay=0.2, inter_delay=0.5)
        >>> shas = await scheduler.run(files, upload_one)
    """

    def __init__(
        self,
        batch_size: int = 5,
        intra_delay: float = 0.2,
        inter_delay: float = 0.5,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            batch_size: Operations issued concurrently per batch
            intra_delay: Seconds each operation after the first in a batch
                waits before issuing its call
            inter_delay: Seconds to pause between batches
            sleep: Awaitable sleep (injectable for tests)

        Raises:
            ValueError: If parameters are invalid
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if intra_delay < 0 or inter_delay < 0:
            raise ValueError("delays must be non-negative")

        self.batch_size = batch_size
        self.intra_delay = intra_delay
        self.inter_delay = inter_delay
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: BatchSettings, *, sleep: Sleep = asyncio.sleep) -> BatchScheduler:
        return cls(
            batch_size=settings.batch_size,
            intra_delay=settings.intra_delay,
            inter_delay=settings.inter_delay,
            sleep=sleep,
        )

    async def _paced(
        self, fn: Callable[[T, int], Awaitable[R]], item: T, index: int
    ) -> R:
        if index > 0 and self.intra_delay > 0:
            await self._sleep(self.intra_delay)
        return await fn(item, index)

    async def run(self, items: Sequence[T], fn: Callable[[T, int], Awaitable[R]]) -> list[R]:
        """
        Apply ``fn(item, index_in_batch)`` to every item.

        If an operation fails, its siblings in the same batch are still
        awaited, no further batches start, and the first failure in input
        order is raised.

        Args:
            items: Items to process
            fn: Coroutine function taking the item and its index in the batch

        Returns:
            Results in input order
        """
        results: list[R] = []
        total = len(items)
        started = time.monotonic()

        for start in range(0, total, self.batch_size):
            batch = items[start : start + self.batch_size]
            outcomes = await asyncio.gather(
                *(self._paced(fn, item, index) for index, item in enumerate(batch)),
                return_exceptions=True,
            )

            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    logger.debug(
                        "Batch starting at item %d failed: %s", start, outcome
                    )
                    raise outcome
                results.append(outcome)

            if start + self.batch_size < total and self.inter_delay > 0:
                await self._sleep(self.inter_delay)

        logger.debug(
            "Processed %d items in batches of %d in %dms",
            total,
            self.batch_size,
            int((time.monotonic() - started) * 1000),
        )
        return results
